"""Cancellation and deadline scope shared by the stages of one pipeline run."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from ..models.transcription import TranscriptionStatus
from .errors import PipelineCancelledError, PipelineDeadlineExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineContext:
    """Cancellation event plus an optional absolute deadline.

    Created inside the running event loop. ``deadline`` is a relative budget
    in seconds for the whole pipeline run; None means unbounded.
    """

    def __init__(self, deadline: Optional[float] = None):
        if deadline is not None and deadline <= 0:
            raise ValueError("deadline must be positive")
        self._loop = asyncio.get_running_loop()
        self._cancelled = asyncio.Event()
        self._expires_at = self._loop.time() + deadline if deadline is not None else None
        self.deadline = deadline

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, never negative; None without a deadline."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._loop.time())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, stage: TranscriptionStatus) -> None:
        """Raise if the run was cancelled or its deadline passed before ``stage``."""
        if self.cancelled:
            raise PipelineCancelledError(stage, f"Pipeline cancelled before {stage.value}")
        if self.expired:
            raise PipelineDeadlineExceededError(
                stage, f"Pipeline deadline of {self.deadline}s exceeded before {stage.value}"
            )

    async def run(self, stage: TranscriptionStatus, call: Awaitable[T]) -> T:
        """Await a backend call bounded by the deadline and the cancellation event.

        Whichever comes first wins: the call result, a cancel request
        (PipelineCancelledError) or the deadline (PipelineDeadlineExceededError).
        """
        work = asyncio.ensure_future(call)
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter}, timeout=self.remaining(), return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception as e:
            # The call failed while being abandoned; the cancel/deadline cause wins
            logger.debug(f"Abandoned {stage.value} call raised: {e}")

        if self.cancelled:
            raise PipelineCancelledError(stage, f"Pipeline cancelled during {stage.value}")
        raise PipelineDeadlineExceededError(
            stage, f"Pipeline deadline of {self.deadline}s exceeded during {stage.value}"
        )
