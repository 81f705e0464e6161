"""Processing state owned by the active run."""

import asyncio
import logging
import time
from typing import Any, Callable, List, Optional

from ...errors import ErrorCode
from ..models import ProcessingStage, ProcessingState, RunStatus

logger = logging.getLogger(__name__)


class ProcessingStateManager:
    """Single owner of the ProcessingState record.

    Progress never moves backwards within a run except for the explicit 0
    at start; stages only move forward. Observers can subscribe to receive
    a snapshot after every change.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._state = ProcessingState()
        self._subscribers: List[asyncio.Queue] = []

    @property
    def state(self) -> ProcessingState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._state.is_processing

    def snapshot(self) -> ProcessingState:
        """Copy of the current state, safe to hand to callers."""
        return self._state.model_copy(deep=True)

    def subscribe(self) -> asyncio.Queue:
        """Subscribe to state snapshots."""
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        """Unsubscribe from state snapshots."""
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def _broadcast(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for queue in self._subscribers:
            queue.put_nowait(snapshot)

    def start(self) -> bool:
        """Begin a run.

        Returns:
            False if a run is already active
        """
        if self._state.is_processing:
            logger.warning("Processing already in progress, rejecting new run")
            return False

        self._state = ProcessingState(
            run_status=RunStatus.IDLE,
            stage=ProcessingStage.STARTING,
            status="Starting...",
            progress=0,
            is_processing=True,
            start_time=self._clock(),
        )
        self._broadcast()
        return True

    def _advance_stage(self, stage: ProcessingStage) -> None:
        current = self._state.stage
        if current is None:
            self._state.stage = stage
            return
        if stage.order < current.order:
            logger.debug(f"Ignoring backward stage transition {current.value} -> {stage.value}")
            return
        if stage != current:
            if current not in self._state.completed_stages:
                self._state.completed_stages.append(current)
            self._state.stage = stage

    def update(
        self,
        stage: Optional[ProcessingStage] = None,
        status: Optional[str] = None,
        progress: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        """Apply a progress report from a pipeline step.

        Args:
            stage: New stage; backward transitions are ignored
            status: Human readable status line
            progress: 0..100; lower values than the current one are ignored
        """
        if not self._state.is_processing:
            return

        if stage is not None:
            self._advance_stage(stage)
        if status is not None:
            self._state.status = status
        if progress is not None:
            progress = max(0, min(100, int(progress)))
            if progress >= self._state.progress:
                self._state.progress = progress

        self._broadcast()

    def set_run_status(self, run_status: RunStatus) -> None:
        if not self._state.is_processing:
            return
        logger.info(f"Run status: {self._state.run_status.value} -> {run_status.value}")
        self._state.run_status = run_status
        self._broadcast()

    def _finish(self, run_status: RunStatus) -> None:
        self._state.run_status = run_status
        self._state.is_processing = False
        self._broadcast()

    def complete(self, result: Any = None) -> None:
        """Terminal transition to DONE."""
        self._advance_stage(ProcessingStage.COMPLETE)
        self._state.status = "Done!"
        self._state.progress = 100
        self._state.result = result
        self._finish(RunStatus.DONE)

    def set_error(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN_ERROR) -> None:
        """Terminal transition to ERROR."""
        logger.error(f"Processing failed ({code.value}): {message}")
        self._state.error = message
        self._state.error_code = code.value
        self._state.status = "Error"
        self._finish(RunStatus.ERROR)

    def cancel(self) -> None:
        """Terminal transition to CANCELLED. No error is recorded."""
        self._state.is_cancelled = True
        self._state.status = "Cancelled"
        self._finish(RunStatus.CANCELLED)

    def reset(self) -> None:
        """Return to an idle record, dropping the previous run's outcome."""
        if self._state.is_processing:
            logger.warning("Resetting state while processing")
        self._state = ProcessingState()
        self._broadcast()
