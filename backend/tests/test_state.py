"""Tests for the processing state manager."""

import pytest

from pageclip.core.models import ProcessingStage, RunStatus
from pageclip.core.pipeline.state import ProcessingStateManager
from pageclip.errors import ErrorCode


@pytest.fixture
def manager():
    return ProcessingStateManager(clock=lambda: 1000.0)


class TestProcessingStateManager:
    """Test state transitions."""

    def test_initial_state(self, manager):
        """Test a fresh manager is idle."""
        assert manager.state.run_status == RunStatus.IDLE
        assert not manager.is_processing
        assert manager.state.progress == 0

    def test_start(self, manager):
        """Test start begins a run at progress 0."""
        assert manager.start()

        state = manager.state
        assert state.is_processing
        assert state.stage == ProcessingStage.STARTING
        assert state.progress == 0
        assert state.start_time == 1000.0

    def test_second_start_rejected(self, manager):
        """Test only one run is active at a time."""
        assert manager.start()
        assert not manager.start()

    def test_progress_monotonic(self, manager):
        """Test progress never decreases and is clamped."""
        manager.start()
        manager.update(progress=30)
        manager.update(progress=20)
        assert manager.state.progress == 30

        manager.update(progress=150)
        assert manager.state.progress == 100

    def test_stages_forward_only(self, manager):
        """Test backward stage transitions are ignored."""
        manager.start()
        manager.update(stage=ProcessingStage.EXTRACTING)
        manager.update(stage=ProcessingStage.TRANSLATING)
        manager.update(stage=ProcessingStage.EXTRACTING)

        assert manager.state.stage == ProcessingStage.TRANSLATING
        assert manager.state.completed_stages == [ProcessingStage.STARTING, ProcessingStage.EXTRACTING]

    def test_updates_ignored_when_idle(self, manager):
        """Test reports outside a run change nothing."""
        manager.update(stage=ProcessingStage.EXTRACTING, status="late", progress=50)
        manager.set_run_status(RunStatus.EXTRACTING)

        assert manager.state.progress == 0
        assert manager.state.status == "Ready"
        assert manager.state.run_status == RunStatus.IDLE

    def test_complete(self, manager):
        """Test the DONE transition."""
        manager.start()
        manager.update(stage=ProcessingStage.GENERATING, progress=65)
        manager.complete("artifact")

        state = manager.state
        assert state.run_status == RunStatus.DONE
        assert state.progress == 100
        assert state.stage == ProcessingStage.COMPLETE
        assert state.result == "artifact"
        assert not state.is_processing

    def test_error(self, manager):
        """Test the ERROR transition records the code."""
        manager.start()
        manager.set_error("API authentication failed", ErrorCode.AUTH_ERROR)

        state = manager.state
        assert state.run_status == RunStatus.ERROR
        assert state.error == "API authentication failed"
        assert state.error_code == "auth_error"
        assert not state.is_processing

    def test_cancel(self, manager):
        """Test cancellation is terminal and not an error."""
        manager.start()
        manager.update(progress=40)
        manager.cancel()

        state = manager.state
        assert state.run_status == RunStatus.CANCELLED
        assert state.is_cancelled
        assert state.error is None
        assert not state.is_processing

    def test_restart_after_terminal(self, manager):
        """Test a new run starts from a clean record."""
        manager.start()
        manager.set_error("boom")
        assert manager.start()

        state = manager.state
        assert state.progress == 0
        assert state.error is None
        assert state.completed_stages == []

    def test_snapshot_is_copy(self, manager):
        """Test snapshots do not alias the live record."""
        manager.start()
        snapshot = manager.snapshot()
        manager.update(progress=50)

        assert snapshot.progress == 0

    def test_reset(self, manager):
        """Test reset returns to idle."""
        manager.start()
        manager.complete()
        manager.reset()
        assert manager.state.run_status == RunStatus.IDLE
        assert manager.state.result is None

    @pytest.mark.asyncio
    async def test_subscribers_receive_snapshots(self, manager):
        """Test every change is broadcast until unsubscribed."""
        queue = manager.subscribe()
        manager.start()
        manager.update(progress=10)

        assert queue.qsize() == 2
        assert queue.get_nowait().progress == 0
        assert queue.get_nowait().progress == 10

        manager.unsubscribe(queue)
        manager.update(progress=20)
        assert queue.empty()
