"""
360° Product Video Pipeline

  Upload    : product photo(s) → public URL (ImageKit or R2), best-effort
  Describe  : Gemini vision → description → deterministic video prompt
  Synthesize: Veo (Vertex AI or Kie.ai) → rotation video bytes

Routers live in .routes and are mounted by turntable.main.
"""

from .job_store import JobStore
from .models import Job, JobStatus
from .orchestrator import VideoGenerationService

__all__ = [
    "JobStore",
    "Job",
    "JobStatus",
    "VideoGenerationService",
]
