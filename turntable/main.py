import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from . import config
from .errors import ConfigurationMissing
from .pipeline.routes import pipeline_router, tools_router
from .provider_factory import ProviderFactory

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _configured(provider) -> bool:
    if provider is None:
        return False
    try:
        provider.ensure_configured()
    except ConfigurationMissing:
        return False
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if getattr(app.state, "service", None) is None:
        app.state.service = ProviderFactory.build_service()
    service = app.state.service
    logger.info(
        f"Turntable worker starting up (image host={config.IMAGE_HOST}, "
        f"video provider={config.VIDEO_PROVIDER})"
    )
    for name, provider in (
        ("image host", service.image_host),
        ("describer", service.describer),
        ("video synthesizer", service.synthesizer),
    ):
        if not _configured(provider):
            logger.warning(f"{name} is not configured; related requests will fail")
    yield
    logger.info("Turntable worker shutting down...")


app = FastAPI(title="Turntable", lifespan=lifespan)
app.include_router(pipeline_router)
app.include_router(tools_router)


@app.get("/health")
def health_check():
    """Liveness plus which providers have their settings in place."""
    service = getattr(app.state, "service", None)
    return {
        "status": "ok",
        "image_host": config.IMAGE_HOST,
        "video_provider": config.VIDEO_PROVIDER,
        "image_host_configured": _configured(service.image_host) if service else False,
        "describer_configured": _configured(service.describer) if service else False,
        "synthesizer_configured": _configured(service.synthesizer) if service else False,
        "jobs": len(service.store) if service else 0,
    }


if __name__ == "__main__":
    uvicorn.run("turntable.main:app", host="0.0.0.0", port=config.PORT)
