import base64
from typing import Optional, Sequence

import pytest

from turntable.errors import UploadFailed
from turntable.gemini import build_video_prompt
from turntable.pipeline.job_store import JobStore
from turntable.pipeline.models import Description, VideoResult
from turntable.pipeline.orchestrator import VideoGenerationService

RED_MUG_JPEG = b"\xff\xd8\xff\xe0" + b"red-mug" * 64
RED_MUG_DATA_URL = "data:image/jpeg;base64," + base64.b64encode(RED_MUG_JPEG).decode()


class FakeImageHost:
    """Records uploads; returns queued URLs or raises UploadFailed when told to."""

    def __init__(self, urls: Sequence[str] = (), fail: bool = False):
        self.urls = list(urls)
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    def ensure_configured(self) -> None:
        pass

    async def upload(self, image_ref: str, suggested_name: str) -> str:
        self.calls.append((image_ref, suggested_name))
        if self.fail:
            raise UploadFailed("ImageKit upload failed (503): unavailable", status_code=503)
        return self.urls.pop(0) if self.urls else f"https://cdn.example/{suggested_name}"


class FakeDescriber:
    def __init__(self, description: str = "A glossy red ceramic mug with a curved handle.", error: Optional[Exception] = None):
        self.description = description
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def ensure_configured(self) -> None:
        pass

    async def describe(self, image_ref: str, product_name: str) -> Description:
        self.calls.append((image_ref, product_name))
        if self.error:
            raise self.error
        return Description(
            description=self.description,
            video_prompt=build_video_prompt(product_name, self.description),
        )


class FakeSynthesizer:
    def __init__(self, video: bytes = b"\x00\x00\x00\x18ftypmp42", error: Optional[Exception] = None):
        self.video = video
        self.error = error
        self.calls: list[tuple[str, str, list[str]]] = []

    def ensure_configured(self) -> None:
        pass

    async def generate(self, prompt: str, product_name: str, reference_images: Sequence[str] = ()) -> VideoResult:
        self.calls.append((prompt, product_name, list(reference_images)))
        if self.error:
            raise self.error
        return VideoResult(video_bytes=self.video, mime_type="video/mp4")


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def store():
    return JobStore()


@pytest.fixture
def image_host():
    return FakeImageHost(urls=["https://cdn.example/mug123.jpg"])


@pytest.fixture
def describer():
    return FakeDescriber()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def service(store, image_host, describer, synthesizer):
    return VideoGenerationService(store, image_host, describer, synthesizer)
