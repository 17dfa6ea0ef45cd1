"""Shared helpers."""
from .events import EventEmitter

__all__ = ["EventEmitter"]
