"""Observable handles for background token generation.

:meth:`TokenLifecycleManager.start_generate
<axmtoken.lifecycle.manager.TokenLifecycleManager.start_generate>` returns a
:class:`GenerationTask` instead of launching an untracked coroutine. The
handle can be cancelled or awaited, and its :class:`GenerationResult` is
also delivered to an optional callback once the task finishes.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from axmtoken.models import TokenConfiguration

logger = logging.getLogger(__name__)


class GenerationOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class GenerationResult:
    """How a generation attempt ended.

    Attributes:
        config_id: The configuration that was generated for.
        outcome: Succeeded, failed or cancelled.
        configuration: The updated record on success.
        error: The raised exception on failure.
    """

    config_id: str
    outcome: GenerationOutcome
    configuration: Optional[TokenConfiguration] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.outcome is GenerationOutcome.SUCCEEDED


OnComplete = Callable[[GenerationResult], None]


class GenerationTask:
    """Handle for one scheduled generation.

    Args:
        config_id: The configuration being generated.
        future: The running :class:`asyncio.Task`.
        on_complete: Called with the :class:`GenerationResult` when the
            task finishes, including when it is cancelled.
    """

    def __init__(
        self,
        config_id: str,
        future: asyncio.Future,
        on_complete: Optional[OnComplete] = None,
    ) -> None:
        self._config_id = config_id
        self._future = future
        self._on_complete = on_complete
        self._result: Optional[GenerationResult] = None
        future.add_done_callback(self._finished)

    @property
    def config_id(self) -> str:
        return self._config_id

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> bool:
        """Request cancellation. Returns False if the task already finished."""
        return self._future.cancel()

    @property
    def result(self) -> Optional[GenerationResult]:
        """The outcome, or None while the task is still running."""
        if not self._future.done():
            return None
        return self._resolve()

    async def wait(self) -> GenerationResult:
        """Wait for the task to finish and return its outcome.

        Never raises the task's own exception; failures are reported in the
        result. Cancelling the waiter does not cancel the task.
        """
        await asyncio.wait({self._future})
        return self._resolve()

    def _resolve(self) -> GenerationResult:
        if self._result is None:
            if self._future.cancelled():
                self._result = GenerationResult(self._config_id, GenerationOutcome.CANCELLED)
            elif self._future.exception() is not None:
                self._result = GenerationResult(
                    self._config_id,
                    GenerationOutcome.FAILED,
                    error=self._future.exception(),
                )
            else:
                self._result = GenerationResult(
                    self._config_id,
                    GenerationOutcome.SUCCEEDED,
                    configuration=self._future.result(),
                )
        return self._result

    def _finished(self, _future: asyncio.Future) -> None:
        result = self._resolve()
        logger.debug("Generation for %s %s", self._config_id, result.outcome.value)
        if self._on_complete is not None:
            self._on_complete(result)
