"""Phase events for attachment uploads and publishing."""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import asyncio
import logging
logger = logging.getLogger(__name__)


class Outcome:
    STARTED = "started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class UploadEvent:
    """Phase transition of one attachment."""
    attachment_id: str
    phase: str  # e.g. thumbnail.seeking, video.upload, publish
    outcome: str
    detail: Optional[str] = None


Listener = Callable[..., object]


class EventEmitter:
    """
    Observer for upload phases.

    Listeners may be plain or async callables. A failing listener is
    logged and never interrupts the upload that emitted the event.
    """

    ALL = "*"

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, phase: str, listener: Listener):
        """Subscribe to a phase (``EventEmitter.ALL`` receives every phase)."""
        registered = self._listeners.setdefault(phase, [])
        if listener not in registered:
            registered.append(listener)

    def off(self, phase: str, listener: Listener):
        registered = self._listeners.get(phase)
        if registered and listener in registered:
            registered.remove(listener)

    async def emit(self, phase: str, *args, **kwargs):
        """Deliver to listeners of ``phase`` in subscription order."""
        # snapshot: listeners may unsubscribe while being called
        for listener in list(self._listeners.get(phase, ())):
            try:
                if asyncio.iscoroutinefunction(listener):
                    await listener(*args, **kwargs)
                else:
                    listener(*args, **kwargs)
            except Exception as e:
                logger.error(f"[event] listener for {phase} failed: {e}")

    async def publish(self, attachment_id: str, phase: str, outcome: str, detail: str = None):
        """Build an UploadEvent and deliver it to phase and wildcard listeners."""
        event = UploadEvent(attachment_id, phase, outcome, detail)
        logger.debug(f"[event] {attachment_id} {phase} {outcome}" + (f": {detail}" if detail else ""))
        await self.emit(phase, event)
        await self.emit(self.ALL, event)
        return event
