from typing import Optional

from . import config
from .gemini import GeminiDescriber
from .imagekit import ImageKitHost
from .kie import KieVeoSynthesizer
from .pipeline.job_store import JobStore
from .pipeline.orchestrator import VideoGenerationService
from .pipeline.storage import R2ImageHost
from .veo import VertexVeoSynthesizer


class ProviderFactory:
    @staticmethod
    def get_image_host(name: Optional[str] = None):
        name = (name or config.IMAGE_HOST).lower()
        if name == "imagekit":
            return ImageKitHost()
        if name == "r2":
            return R2ImageHost()
        if name in ("none", ""):
            return None
        raise ValueError(f"Unknown IMAGE_HOST '{name}' (expected imagekit, r2 or none)")

    @staticmethod
    def get_describer():
        return GeminiDescriber()

    @staticmethod
    def get_video_synthesizer(name: Optional[str] = None):
        name = (name or config.VIDEO_PROVIDER).lower()
        if name == "vertex":
            return VertexVeoSynthesizer()
        if name == "kie":
            return KieVeoSynthesizer()
        raise ValueError(f"Unknown VIDEO_PROVIDER '{name}' (expected vertex or kie)")

    @staticmethod
    def build_service(store: Optional[JobStore] = None) -> VideoGenerationService:
        return VideoGenerationService(
            store=store if store is not None else JobStore(),
            image_host=ProviderFactory.get_image_host(),
            describer=ProviderFactory.get_describer(),
            synthesizer=ProviderFactory.get_video_synthesizer(),
        )
