"""Upload pipeline: request model and confirmation gate.

The orchestrator lives in trackdrop.pipeline.orchestrator.
"""

from .models import (
    Attachment,
    UploadRequest,
    TemporaryAsset,
    PublishResult,
    PipelineOutcome,
    PipelineStage,
    RunStatus,
    ValidationError,
    parse_tags,
    format_tags,
)
from .confirmation import ConfirmationGate, ConfirmationResult, ConfirmationSession

__all__ = [
    "Attachment",
    "UploadRequest",
    "TemporaryAsset",
    "PublishResult",
    "PipelineOutcome",
    "PipelineStage",
    "RunStatus",
    "ValidationError",
    "parse_tags",
    "format_tags",
    "ConfirmationGate",
    "ConfirmationResult",
    "ConfirmationSession",
]
