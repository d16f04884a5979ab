"""
VideoGenerationService: the 360° video pipeline orchestrator.

Chains the three provider stages for one job, persisting each result before
the next stage starts:
  Step 1: Upload     (ImageHost, best-effort, falls back to the original reference)
  Step 2: Describe   (VisionDescriber, fatal on error)
  Step 3: Synthesize (VideoSynthesizer, fatal on error or timeout)
"""

import time
import logging
from typing import Optional, Sequence

from ..errors import ConfigurationMissing, PipelineError, UploadFailed
from .job_store import JobStore
from .models import Job, JobStatus
from .providers import ImageHost, VideoSynthesizer, VisionDescriber
from .storage import safe_file_stem

logger = logging.getLogger(__name__)


class VideoGenerationService:
    """
    Pipeline orchestrator.

    Usage:
        service = VideoGenerationService(JobStore(), image_host, describer, synthesizer)
        job = await service.run_pipeline(image_data, "Red Mug", additional_images)
        if job.status is JobStatus.COMPLETED:
            ...  # job.video_data, job.video_mime_type
    """

    def __init__(
        self,
        store: JobStore,
        image_host: Optional[ImageHost],
        describer: VisionDescriber,
        synthesizer: VideoSynthesizer,
    ):
        self.store = store
        self.image_host = image_host
        self.describer = describer
        self.synthesizer = synthesizer

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)

    def list_jobs(self) -> list[Job]:
        return self.store.list()

    def _update_status(self, job_id: str, step: str, **fields) -> Job:
        job = self.store.update(job_id, **fields)
        logger.info(f"[{job_id}] {job.status.value} → {step}")
        return job

    def _fail(self, job_id: str, stage: str, exc: Exception) -> Job:
        message = exc.message if isinstance(exc, PipelineError) else str(exc) or type(exc).__name__
        return self._update_status(
            job_id,
            f"{stage} failed: {message}",
            status=JobStatus.FAILED,
            error=message,
            error_type=type(exc).__name__,
            failed_stage=stage,
            error_detail=getattr(exc, "detail", None),
        )

    # ── Step 1: Upload ───────────────────────────────────────────────────

    def _image_host_ready(self, job_id: str) -> bool:
        if self.image_host is None:
            logger.info(f"[{job_id}] No image host configured, using original references")
            return False
        try:
            self.image_host.ensure_configured()
        except ConfigurationMissing as e:
            logger.warning(f"[{job_id}] Image host unavailable ({e.message}), using original references")
            return False
        return True

    async def _upload_one(self, job_id: str, image_ref: str, file_name: str) -> Optional[str]:
        """Upload one image; None means the caller should use the original reference."""
        try:
            url = await self.image_host.upload(image_ref, file_name)
        except (UploadFailed, ConfigurationMissing) as e:
            logger.warning(f"[{job_id}] Upload failed for {file_name}, using original: {e.message}")
            return None
        logger.info(f"[{job_id}] Uploaded {file_name}: {url}")
        return url

    async def _resolve_references(
        self,
        job_id: str,
        source_image: str,
        additional_images: Sequence[str],
        product_name: str,
    ) -> tuple[Optional[str], list[str]]:
        """Returns (hosted primary URL or None, resolved references primary-first)."""
        if not self._image_host_ready(job_id):
            return None, [source_image, *additional_images]

        stem = safe_file_stem(product_name)
        stamp = int(time.time() * 1000)

        hosted_url = await self._upload_one(job_id, source_image, f"{stem}_main_{stamp}.jpg")
        resolved = [hosted_url or source_image]

        for i, image_ref in enumerate(additional_images, start=1):
            url = await self._upload_one(job_id, image_ref, f"{stem}_angle{i}_{stamp}.jpg")
            resolved.append(url or image_ref)

        return hosted_url, resolved

    # ── Full Pipeline ────────────────────────────────────────────────────

    async def run_pipeline(
        self,
        source_image: str,
        product_name: str,
        additional_images: Sequence[str] = (),
        shopify_product_id: Optional[str] = None,
    ) -> Job:
        """
        Run upload → describe → synthesize for one image.

        Args:
            source_image:       Primary product photo (URL, data URL or base64).
            product_name:       Product label embedded in the prompt.
            additional_images:  Extra angles used as reference images.
            shopify_product_id: Optional catalogue reference, stored for display.

        Returns:
            The job in its terminal state: COMPLETED with video_data set, or
            FAILED with error/error_type/failed_stage describing the cause.
        """
        job = self.store.create(
            product_name=product_name,
            source_image=source_image,
            additional_images=list(additional_images),
            shopify_product_id=shopify_product_id,
        )
        job_id = job.id
        logger.info(
            f"[{job_id}] Starting 360° video generation for '{product_name}' "
            f"(main image + {len(additional_images)} additional angle(s))"
        )

        try:
            self.describer.ensure_configured()
            self.synthesizer.ensure_configured()
        except ConfigurationMissing as e:
            logger.error(f"[{job_id}] Configuration missing: {e.message}")
            return self._fail(job_id, e.stage, e)

        stage = "upload"
        try:
            # ── Step 1: Upload ───────────────────────────────────────
            hosted_url, references = await self._resolve_references(
                job_id, source_image, additional_images, product_name
            )
            self.store.update(job_id, hosted_image_url=hosted_url, reference_images=references)

            # ── Step 2: Describe ─────────────────────────────────────
            stage = "describe"
            self._update_status(job_id, "Analyzing image...", status=JobStatus.ANALYZING)
            analysis = await self.describer.describe(references[0], product_name)

            self._update_status(
                job_id,
                "Generating 360° video...",
                status=JobStatus.GENERATING,
                description=analysis.description,
                video_prompt=analysis.video_prompt,
            )

            # ── Step 3: Synthesize ───────────────────────────────────
            stage = "synthesize"
            logger.info(f"[{job_id}] Sending {len(references)} reference image(s) to the video model")
            video = await self.synthesizer.generate(analysis.video_prompt, product_name, references)

            # ── Done ─────────────────────────────────────────────────
            return self._update_status(
                job_id,
                f"Video ready ({len(video.video_bytes)} bytes, {video.mime_type})",
                status=JobStatus.COMPLETED,
                video_data=video.video_bytes,
                video_mime_type=video.mime_type,
            )

        except PipelineError as e:
            logger.error(f"[{job_id}] {type(e).__name__} during {e.stage}: {e.message}")
            return self._fail(job_id, e.stage, e)
        except Exception as e:
            logger.error(f"[{job_id}] Pipeline crashed during {stage}: {e}", exc_info=True)
            return self._fail(job_id, stage, e)
