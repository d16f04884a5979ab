"""
Capabilities the orchestrator depends on. Concrete clients live one level up
(imagekit, gemini, veo, kie) and in storage (R2).
"""

from typing import Protocol, Sequence

from .models import Description, VideoResult


class ImageHost(Protocol):
    def ensure_configured(self) -> None: ...

    async def upload(self, image_ref: str, suggested_name: str) -> str: ...


class VisionDescriber(Protocol):
    def ensure_configured(self) -> None: ...

    async def describe(self, image_ref: str, product_name: str) -> Description: ...


class VideoSynthesizer(Protocol):
    def ensure_configured(self) -> None: ...

    async def generate(
        self,
        prompt: str,
        product_name: str,
        reference_images: Sequence[str] = (),
    ) -> VideoResult: ...
