"""Orchestrator package - the slingshot upload state machine."""
from .core import UploadOrchestrator
from .machine import UploadEvent, advance, next_status

__all__ = ["UploadOrchestrator", "UploadEvent", "advance", "next_status"]
