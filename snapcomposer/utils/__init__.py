"""Utilities: structured events and retry policy."""
from .events import EventEmitter, Outcome, UploadEvent
from .retry import RetryPolicy

__all__ = ["EventEmitter", "Outcome", "UploadEvent", "RetryPolicy"]
