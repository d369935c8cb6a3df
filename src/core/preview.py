"""
Resource Preview Manager - owns the transient preview handle of one form.

A handle made from a selected file is a local resource and must be released
exactly once: when another file is selected, when the selection is cleared,
or when the form closes. Handles that point at a remote URL need no release.
"""

import uuid
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from util.logging import logger


@dataclass(frozen=True)
class SelectedFile:
    """A file the operator picked for upload."""
    name: str
    content_type: str
    size: int
    path: Optional[str] = None
    data: Optional[bytes] = None

    @property
    def is_image(self) -> bool:
        return (self.content_type or "").startswith("image/")


@dataclass(frozen=True)
class PreviewHandle:
    url: str
    local: bool


class PreviewAllocator(Protocol):
    def acquire(self, file: SelectedFile) -> str: ...

    def release(self, url: str) -> None: ...


class LocalPreviewAllocator:
    """Issues preview:// handles for selected files and tracks which are live."""

    def __init__(self):
        self.live: Dict[str, SelectedFile] = {}
        self.released = []

    def acquire(self, file: SelectedFile) -> str:
        url = f"preview://{uuid.uuid4()}"
        self.live[url] = file
        logger.log_preview_event("acquired", url)
        return url

    def release(self, url: str) -> None:
        # Unknown or already released handles are ignored
        if self.live.pop(url, None) is not None:
            self.released.append(url)
            logger.log_preview_event("released", url)


class PreviewManager:
    """Holds at most one live local handle for a form."""

    def __init__(self, allocator: Optional[PreviewAllocator] = None):
        self.allocator = allocator or LocalPreviewAllocator()
        self.handle: Optional[PreviewHandle] = None
        # Every release trigger counts, including ones with nothing to release
        self.release_operations = 0

    @property
    def url(self) -> str:
        return self.handle.url if self.handle else ""

    def _release(self) -> None:
        self.release_operations += 1
        handle, self.handle = self.handle, None
        if handle is not None and handle.local:
            self.allocator.release(handle.url)

    def set_from_file(self, file: SelectedFile) -> PreviewHandle:
        self._release()
        self.handle = PreviewHandle(self.allocator.acquire(file), local=True)
        return self.handle

    def set_from_url(self, url: Optional[str]) -> Optional[PreviewHandle]:
        self._release()
        if url:
            self.handle = PreviewHandle(url, local=False)
        return self.handle

    def clear(self) -> None:
        self._release()
