"""Token lifecycle: generation, refresh, status and background tasks."""

from axmtoken.lifecycle.manager import TokenLifecycleManager
from axmtoken.lifecycle.status import (
    DEFAULT_EXPIRING_THRESHOLD,
    derive_status,
    is_expiring,
    select_expiring,
)
from axmtoken.lifecycle.tasks import GenerationOutcome, GenerationResult, GenerationTask

__all__ = [
    "DEFAULT_EXPIRING_THRESHOLD",
    "GenerationOutcome",
    "GenerationResult",
    "GenerationTask",
    "TokenLifecycleManager",
    "derive_status",
    "is_expiring",
    "select_expiring",
]
