"""
Error taxonomy shared by the creative pipeline, the image-job client and the API layer.

Every error carries the HTTP status it maps to so the API can render it
without a lookup table. Provider-level failures (ModelError and friends) are
translated into these at the pipeline boundary.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    status_code: int = 500
    error_code: str = "pipeline_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PipelineError):
    """Request rejected before any network call was made."""
    status_code = 400
    error_code = "validation_error"


class ConfigurationError(PipelineError):
    error_code = "configuration_error"


class UpstreamError(PipelineError):
    """A provider or the renderer answered with a non-success status or an unusable body."""
    error_code = "upstream_error"

    def __init__(self, message: str, upstream_status: Optional[int] = None, upstream_body: Optional[str] = None):
        details = {}
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        if upstream_body is not None:
            details["upstream_body"] = upstream_body[:2000]
        super().__init__(message, details)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class GenerationTimeout(PipelineError):
    """The work may still finish remotely; the client stopped waiting."""
    status_code = 504
    error_code = "timeout"


class JobTimeoutError(GenerationTimeout):
    def __init__(self, job_id: str, elapsed: float):
        super().__init__(
            f"Image job {job_id} did not finish within {elapsed:.1f}s",
            {"job_id": job_id, "elapsed_s": round(elapsed, 3)},
        )
        self.job_id = job_id
        self.elapsed = elapsed


class RequestTimeoutError(GenerationTimeout):
    """A single renderer request hung past its own timeout."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(f"Request to {path} timed out", {"path": path})
        self.path = path
        self.cause = cause


class ImageTimeoutError(GenerationTimeout):
    def __init__(self, deadline: float):
        super().__init__(f"Image generation timed out after {deadline:.0f}s", {"deadline_s": deadline})
        self.deadline = deadline


class StepFailedError(PipelineError):
    """One role step failed, which aborts the whole pipeline run."""
    error_code = "step_failed"

    def __init__(self, role: Optional[str], cause: BaseException):
        label = role or "unknown"
        super().__init__(f"Pipeline step {label} failed: {cause}", {"role": label})
        self.role = role
        self.cause = cause


class UnknownActionError(PipelineError):
    error_code = "unknown_action"

    def __init__(self, message: str, action_name: Optional[str] = None):
        super().__init__(message, {"action": action_name} if action_name else None)
        self.action_name = action_name
