"""
Error taxonomy for the 360° video pipeline.

Every provider failure is raised as a PipelineError subclass so the
orchestrator can record which stage failed, why, and what the provider said.

  UploadFailed          : image host rejected the upload (non-fatal)
  DescriptionFailed     : vision model errored or returned nothing usable
  GenerationFailed      : video model reported an error
  GenerationTimeout     : video operation never finished within the poll budget
  ConfigurationMissing  : a required credential/identifier is not set
"""

from typing import Any, Optional


class PipelineError(RuntimeError):
    stage = "pipeline"

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class UploadFailed(PipelineError):
    stage = "upload"

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[Any] = None):
        super().__init__(message, detail)
        self.status_code = status_code


class DescriptionFailed(PipelineError):
    stage = "describe"


class GenerationFailed(PipelineError):
    stage = "synthesize"


class GenerationTimeout(PipelineError, TimeoutError):
    stage = "synthesize"


class ConfigurationMissing(PipelineError):
    stage = "configuration"

    def __init__(self, setting: str, message: Optional[str] = None):
        super().__init__(message or f"{setting} not configured")
        self.setting = setting
