"""
Pydantic models and enums for the 360° video pipeline.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ── Job Status ───────────────────────────────────────────────────────────────

class JobStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_advance_to(self, target: "JobStatus") -> bool:
        """One step along the happy path at a time; anything non-terminal may fail."""
        if self is target:
            return True
        if self.is_terminal:
            return False
        if target is JobStatus.FAILED:
            return True
        return _STATUS_ORDER.index(target) == _STATUS_ORDER.index(self) + 1


_STATUS_ORDER = [
    JobStatus.PENDING,
    JobStatus.ANALYZING,
    JobStatus.GENERATING,
    JobStatus.COMPLETED,
]


# ── Job Record ───────────────────────────────────────────────────────────────

class Job(BaseModel):
    """One end-to-end image → video request."""

    id: str
    product_name: str
    source_image: str
    additional_images: list[str] = Field(default_factory=list)
    shopify_product_id: Optional[str] = None

    hosted_image_url: Optional[str] = None
    reference_images: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    video_prompt: Optional[str] = None
    video_data: Optional[bytes] = None
    video_mime_type: Optional[str] = None

    status: JobStatus = JobStatus.PENDING
    error: Optional[str] = None
    error_type: Optional[str] = None
    failed_stage: Optional[str] = None
    error_detail: Optional[Any] = None

    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _check_invariants(self) -> "Job":
        if self.video_prompt and not self.description:
            raise ValueError("video_prompt requires description")
        if self.video_data is not None and self.status is not JobStatus.COMPLETED:
            raise ValueError("video_data may only be set on a completed job")
        if self.status is JobStatus.COMPLETED and self.video_data is None:
            raise ValueError("a completed job must carry video_data")
        if self.status in (JobStatus.GENERATING, JobStatus.COMPLETED) and not (
            self.description and self.video_prompt
        ):
            raise ValueError(f"{self.status.value} job requires description and video_prompt")
        if self.updated_at < self.created_at:
            raise ValueError("updated_at precedes created_at")
        return self

    def summary(self) -> "JobSummary":
        return JobSummary(
            id=self.id,
            productName=self.product_name,
            status=self.status,
            hostedImageUrl=self.hosted_image_url,
            referenceImageCount=len(self.reference_images),
            description=self.description,
            videoPrompt=self.video_prompt,
            hasVideo=self.video_data is not None,
            videoMimeType=self.video_mime_type,
            videoSizeBytes=len(self.video_data) if self.video_data is not None else None,
            shopifyProductId=self.shopify_product_id,
            error=self.error,
            errorType=self.error_type,
            failedStage=self.failed_stage,
            createdAt=self.created_at,
            updatedAt=self.updated_at,
        )


# ── Provider Results ─────────────────────────────────────────────────────────

class Description(BaseModel):
    description: str
    video_prompt: str


class VideoResult(BaseModel):
    video_bytes: bytes
    mime_type: str = "video/mp4"


# ── API Request Models ───────────────────────────────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateVideoRequest(_CamelModel):
    """Full workflow: upload → describe → synthesize."""
    image_data: str = Field(default="", alias="imageData")
    additional_images: list[str] = Field(default_factory=list, alias="additionalImages")
    product_name: str = Field(default="Product", alias="productName")
    shopify_product_id: Optional[str] = Field(default=None, alias="shopifyProductId")


class ImageUploadRequest(_CamelModel):
    image_data: str = Field(default="", alias="imageData")
    file_name: str = Field(default="product-image.jpg", alias="fileName")


class AnalyzeImageRequest(_CamelModel):
    image_data: str = Field(default="", alias="imageData")
    product_name: str = Field(default="Product", alias="productName")


class PromptVideoRequest(_CamelModel):
    """Synthesis only: a ready-made prompt, no reference images."""
    prompt: str = ""
    product_name: str = Field(default="Product", alias="productName")


class ShopifySearchRequest(_CamelModel):
    query: str = ""
    search_type: str = Field(default="title", alias="searchType")


# ── API Response Models ──────────────────────────────────────────────────────

class JobSummary(BaseModel):
    """Job as exposed over HTTP; the video bytes are served separately."""
    id: str
    productName: str
    status: JobStatus
    hostedImageUrl: Optional[str] = None
    referenceImageCount: int = 0
    description: Optional[str] = None
    videoPrompt: Optional[str] = None
    hasVideo: bool = False
    videoMimeType: Optional[str] = None
    videoSizeBytes: Optional[int] = None
    shopifyProductId: Optional[str] = None
    error: Optional[str] = None
    errorType: Optional[str] = None
    failedStage: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime


class JobListResponse(BaseModel):
    generations: list[JobSummary]


# ── Shopify ──────────────────────────────────────────────────────────────────

class ShopifyImage(BaseModel):
    id: str
    url: str
    altText: Optional[str] = None


class ShopifyVariant(BaseModel):
    id: str
    title: str
    sku: Optional[str] = None
    price: Optional[str] = None


class ShopifyProduct(BaseModel):
    id: str
    title: str
    handle: str
    productType: Optional[str] = None
    vendor: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    images: list[ShopifyImage] = Field(default_factory=list)
    variants: list[ShopifyVariant] = Field(default_factory=list)
