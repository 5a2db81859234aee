"""Suggestion pipeline entry point."""

from .factory import build_orchestrator
from .orchestrator import PipelineOrchestrator

__all__ = ["PipelineOrchestrator", "build_orchestrator"]
