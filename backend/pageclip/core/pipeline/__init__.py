"""Pipeline orchestration."""

from .orchestrator import DocumentGenerator, PipelineOrchestrator
from .state import ProcessingStateManager
from .summarizer import Summarizer

__all__ = [
    "DocumentGenerator",
    "PipelineOrchestrator",
    "ProcessingStateManager",
    "Summarizer",
]
