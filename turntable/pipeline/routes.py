"""
FastAPI routes for the 360° video pipeline.

Pipeline Endpoints:
  POST /api/generate-360-video           : run upload → describe → synthesize, return the video
  GET  /api/video-generation/{id}        : job summary
  GET  /api/video-generation/{id}/video  : stored video bytes
  GET  /api/video-generations            : all jobs

Tool Endpoints:
  POST /api/imagekit/upload        : upload one image through the configured host
  POST /api/gemini/analyze         : describe one image
  POST /api/gemini/generate-video  : synthesize a video from a prompt alone
  POST /api/shopify/search         : product search by title or SKU
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from ..errors import ConfigurationMissing, PipelineError
from ..shopify import ShopifyClient, ShopifyError
from .models import (
    AnalyzeImageRequest,
    GenerateVideoRequest,
    ImageUploadRequest,
    JobListResponse,
    JobSummary,
    JobStatus,
    PromptVideoRequest,
    ShopifySearchRequest,
)
from .orchestrator import VideoGenerationService
from .storage import safe_file_stem

logger = logging.getLogger(__name__)


# ── Dependencies ─────────────────────────────────────────────────────────────

def get_service(request: Request) -> VideoGenerationService:
    return request.app.state.service


def get_shopify_client() -> ShopifyClient:
    return ShopifyClient()


def _error_response(status_code: int, exc: Exception, **extra) -> JSONResponse:
    body = {
        "error": getattr(exc, "message", None) or str(exc),
        "details": getattr(exc, "detail", None),
        "errorType": type(exc).__name__,
        **extra,
    }
    return JSONResponse(status_code=status_code, content=body)


def _provider_error(exc: PipelineError) -> JSONResponse:
    status_code = 500 if isinstance(exc, ConfigurationMissing) else 502
    return _error_response(status_code, exc, stage=exc.stage)


def _video_attachment(
    video: bytes, mime_type: Optional[str], product_name: str, headers: Optional[dict] = None
) -> Response:
    filename = f"{safe_file_stem(product_name)}_360_video.mp4"
    return Response(
        content=video,
        media_type=mime_type or "video/mp4",
        headers={"Content-Disposition": f'attachment; filename="{filename}"', **(headers or {})},
    )


# ═════════════════════════════════════════════════════════════════════════════
# Pipeline Router
# ═════════════════════════════════════════════════════════════════════════════

pipeline_router = APIRouter(prefix="/api", tags=["pipeline"])


@pipeline_router.post("/generate-360-video")
async def generate_360_video(
    request: GenerateVideoRequest,
    service: VideoGenerationService = Depends(get_service),
):
    """Run the full workflow and stream the finished video back."""
    if not request.image_data:
        return JSONResponse(status_code=400, content={"error": "Image data is required"})

    job = await service.run_pipeline(
        source_image=request.image_data,
        product_name=request.product_name,
        additional_images=request.additional_images,
        shopify_product_id=request.shopify_product_id,
    )

    if job.status is not JobStatus.COMPLETED:
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to generate 360° video",
                "details": job.error,
                "stage": job.failed_stage,
                "errorType": job.error_type,
                "jobId": job.id,
            },
        )

    return _video_attachment(job.video_data, job.video_mime_type, job.product_name, {"X-Job-Id": job.id})


@pipeline_router.get("/video-generation/{job_id}", response_model=JobSummary)
async def get_video_generation(job_id: str, service: VideoGenerationService = Depends(get_service)):
    job = service.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Video generation not found")
    return job.summary()


@pipeline_router.get("/video-generation/{job_id}/video")
async def get_video_generation_video(job_id: str, service: VideoGenerationService = Depends(get_service)):
    job = service.get_job(job_id)
    if not job or not job.video_data:
        raise HTTPException(status_code=404, detail="Video not found")
    return Response(content=job.video_data, media_type=job.video_mime_type or "video/mp4")


@pipeline_router.get("/video-generations", response_model=JobListResponse)
async def list_video_generations(service: VideoGenerationService = Depends(get_service)):
    return JobListResponse(generations=[job.summary() for job in service.list_jobs()])


# ═════════════════════════════════════════════════════════════════════════════
# Tool Router
# ═════════════════════════════════════════════════════════════════════════════

tools_router = APIRouter(prefix="/api", tags=["tools"])


@tools_router.post("/imagekit/upload")
async def upload_image(request: ImageUploadRequest, service: VideoGenerationService = Depends(get_service)):
    if not request.image_data:
        return JSONResponse(status_code=400, content={"error": "Image data is required"})

    try:
        if service.image_host is None:
            raise ConfigurationMissing("IMAGE_HOST", "No image host configured")
        service.image_host.ensure_configured()
        url = await service.image_host.upload(request.image_data, request.file_name)
    except PipelineError as e:
        logger.error(f"Image upload failed: {e.message}")
        return _provider_error(e)

    return {"success": True, "url": url}


@tools_router.post("/gemini/analyze")
async def analyze_image(request: AnalyzeImageRequest, service: VideoGenerationService = Depends(get_service)):
    if not request.image_data:
        return JSONResponse(status_code=400, content={"error": "Image data is required"})

    try:
        analysis = await service.describer.describe(request.image_data, request.product_name)
    except PipelineError as e:
        logger.error(f"Image analysis failed: {e.message}")
        return _provider_error(e)

    return {
        "success": True,
        "description": analysis.description,
        "videoPrompt": analysis.video_prompt,
    }


@tools_router.post("/gemini/generate-video")
async def generate_video_from_prompt(
    request: PromptVideoRequest,
    service: VideoGenerationService = Depends(get_service),
):
    """Synthesize straight from a prompt; no job record, no reference images."""
    if not request.prompt:
        return JSONResponse(status_code=400, content={"error": "Video prompt is required"})

    try:
        service.synthesizer.ensure_configured()
        video = await service.synthesizer.generate(request.prompt, request.product_name, ())
    except PipelineError as e:
        logger.error(f"Prompt-only video generation failed: {e.message}")
        return _provider_error(e)

    return _video_attachment(video.video_bytes, video.mime_type, request.product_name)


@tools_router.post("/shopify/search")
async def search_shopify_products(
    request: ShopifySearchRequest,
    shopify: ShopifyClient = Depends(get_shopify_client),
):
    if not request.query:
        return JSONResponse(status_code=400, content={"error": "Search query is required"})

    try:
        products = await shopify.search(request.query, request.search_type)
    except ConfigurationMissing as e:
        return _error_response(500, e)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except ShopifyError as e:
        logger.error(f"Shopify search failed: {e}")
        return _error_response(502, e, status=e.status_code)

    return {"products": [p.model_dump() for p in products]}
