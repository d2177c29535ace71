"""
Protocols (Interfaces) for the external collaborators.

Signing, ledger broadcast and container lookup live outside this package;
the composer only sees these small interfaces.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .models import LedgerResponse, UploadFile

Operation = Tuple[str, Dict[str, Any]]


@runtime_checkable
class ISigner(Protocol):
    """Signs image bytes for the image host (key management is external)."""

    async def sign_image(self, content: bytes) -> str:
        """Return the signature authorizing an upload of ``content``."""
        ...


@runtime_checkable
class ILedger(Protocol):
    """Append-only content ledger."""

    async def broadcast(self, operations: List[Operation]) -> LedgerResponse:
        """Sign and submit operations as one atomic transaction."""
        ...


@runtime_checkable
class IContainerLookup(Protocol):
    """Resolves the current container post for top-level snaps."""

    async def latest_permlink(self) -> str:
        ...


class IUploadClient(ABC):
    """A single upload against one external host."""

    @abstractmethod
    async def upload(
        self,
        file: UploadFile,
        destination: Optional[str] = None,
        progress_callback=None,
    ) -> str:
        """Upload file and return the hosted reference."""
        pass


class IFrameSource(ABC):
    """Decodes video metadata and single frames."""

    @abstractmethod
    async def probe(self, path: Path) -> Dict[str, Any]:
        """Return ``width``, ``height`` and ``duration`` of the first video stream."""
        pass

    @abstractmethod
    async def read_frame(self, path: Path, offset: float) -> bytes:
        """Return one encoded still frame at ``offset`` seconds (empty if none)."""
        pass
