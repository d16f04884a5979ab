from unittest.mock import MagicMock

import pytest

from conftest import RED_MUG_DATA_URL, FakeDescriber, FakeImageHost, FakeSynthesizer
from turntable.errors import (
    ConfigurationMissing,
    DescriptionFailed,
    GenerationFailed,
    GenerationTimeout,
)
from turntable.pipeline.models import JobStatus
from turntable.pipeline.orchestrator import VideoGenerationService

TWO_MB_VIDEO = b"\x00" * (2 * 1024 * 1024)


class _RecordingStore:
    """Wraps a JobStore and records every status the orchestrator writes."""

    def __init__(self, store):
        self._store = store
        self.statuses = []

    def __getattr__(self, name):
        return getattr(self._store, name)

    def update(self, job_id, **fields):
        job = self._store.update(job_id, **fields)
        self.statuses.append(job.status)
        return job


@pytest.mark.unit
class TestRunPipeline:
    """End-to-end orchestration with fake providers."""

    @pytest.mark.asyncio
    async def test_red_mug_completes_with_video(self, store, image_host, describer):
        synthesizer = FakeSynthesizer(video=TWO_MB_VIDEO)
        recording = _RecordingStore(store)
        service = VideoGenerationService(recording, image_host, describer, synthesizer)

        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug")

        assert job.status is JobStatus.COMPLETED
        assert job.hosted_image_url == "https://cdn.example/mug123.jpg"
        assert "red ceramic mug" in job.description
        assert "Red Mug" in job.video_prompt
        assert job.video_data == TWO_MB_VIDEO
        assert job.video_mime_type == "video/mp4"
        assert job.error is None

        # describe and synthesize both see the hosted URL, not the inline payload
        assert describer.calls == [("https://cdn.example/mug123.jpg", "Red Mug")]
        assert synthesizer.calls[0][2] == ["https://cdn.example/mug123.jpg"]
        assert recording.statuses[-3:] == [JobStatus.ANALYZING, JobStatus.GENERATING, JobStatus.COMPLETED]

    @pytest.mark.asyncio
    async def test_stored_job_matches_returned_job(self, service, store):
        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug")

        assert service.get_job(job.id) == job
        assert [j.id for j in service.list_jobs()] == [job.id]
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_upload_failure_falls_back_to_original_reference(self, store, describer, synthesizer):
        host = FakeImageHost(fail=True)
        service = VideoGenerationService(store, host, describer, synthesizer)

        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug")

        assert job.status is JobStatus.COMPLETED
        assert job.hosted_image_url is None
        assert job.reference_images == [RED_MUG_DATA_URL]
        assert describer.calls[0][0] == RED_MUG_DATA_URL

    @pytest.mark.asyncio
    async def test_missing_image_host_uses_original_references(self, store, describer, synthesizer):
        service = VideoGenerationService(store, None, describer, synthesizer)

        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug", ["https://shop.example/side.jpg"])

        assert job.status is JobStatus.COMPLETED
        assert job.reference_images == [RED_MUG_DATA_URL, "https://shop.example/side.jpg"]

    @pytest.mark.asyncio
    async def test_additional_images_are_uploaded_and_forwarded(self, store, describer, synthesizer):
        host = FakeImageHost(urls=["https://cdn.example/main.jpg", "https://cdn.example/side.jpg"])
        service = VideoGenerationService(store, host, describer, synthesizer)

        job = await service.run_pipeline(
            RED_MUG_DATA_URL, "Red Mug!", ["https://shop.example/side.jpg"], shopify_product_id="gid://shopify/Product/1"
        )

        assert job.reference_images == ["https://cdn.example/main.jpg", "https://cdn.example/side.jpg"]
        assert job.shopify_product_id == "gid://shopify/Product/1"
        assert host.calls[0][1].startswith("Red_Mug__main_")
        assert host.calls[1][1].startswith("Red_Mug__angle1_")
        assert synthesizer.calls[0][2] == job.reference_images

    @pytest.mark.asyncio
    async def test_describe_failure_short_circuits(self, store, image_host, synthesizer):
        describer = FakeDescriber(error=DescriptionFailed("Gemini API error: 500", detail="upstream"))
        service = VideoGenerationService(store, image_host, describer, synthesizer)

        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug")

        assert job.status is JobStatus.FAILED
        assert job.failed_stage == "describe"
        assert job.error_type == "DescriptionFailed"
        assert job.error_detail == "upstream"
        assert job.description is None
        assert len(synthesizer.calls) == 0

    @pytest.mark.asyncio
    async def test_empty_description_leaves_prompt_unset(self, store, image_host, synthesizer):
        describer = FakeDescriber(error=DescriptionFailed("Invalid Gemini response: no description text"))
        service = VideoGenerationService(store, image_host, describer, synthesizer)

        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug")

        assert job.status is JobStatus.FAILED
        assert job.error_type == "DescriptionFailed"
        assert job.video_prompt is None
        assert synthesizer.calls == []

    @pytest.mark.asyncio
    async def test_generation_timeout_is_distinct_from_failure(self, store, image_host, describer):
        synthesizer = FakeSynthesizer(error=GenerationTimeout("Veo operation timed out after 300s"))
        service = VideoGenerationService(store, image_host, describer, synthesizer)

        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug")

        assert job.status is JobStatus.FAILED
        assert job.error_type == "GenerationTimeout"
        assert job.failed_stage == "synthesize"
        assert job.description is not None
        assert job.video_data is None

    @pytest.mark.asyncio
    async def test_generation_failure_keeps_provider_payload(self, store, image_host, describer):
        error = {"code": 3, "message": "prompt blocked"}
        synthesizer = FakeSynthesizer(error=GenerationFailed("Veo operation failed", detail=error))
        service = VideoGenerationService(store, image_host, describer, synthesizer)

        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug")

        assert job.error_type == "GenerationFailed"
        assert job.error_detail == error

    @pytest.mark.asyncio
    async def test_missing_configuration_fails_before_any_call(self, store, image_host, synthesizer):
        describer = FakeDescriber()
        describer.ensure_configured = MagicMock(side_effect=ConfigurationMissing("GEMINI_API_KEY"))
        service = VideoGenerationService(store, image_host, describer, synthesizer)

        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug")

        assert job.status is JobStatus.FAILED
        assert job.failed_stage == "configuration"
        assert job.error == "GEMINI_API_KEY not configured"
        assert image_host.calls == []
        assert describer.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_recorded_against_running_stage(self, store, image_host, describer):
        synthesizer = FakeSynthesizer(error=KeyError("predictions"))
        service = VideoGenerationService(store, image_host, describer, synthesizer)

        job = await service.run_pipeline(RED_MUG_DATA_URL, "Red Mug")

        assert job.status is JobStatus.FAILED
        assert job.failed_stage == "synthesize"
        assert job.error_type == "KeyError"
