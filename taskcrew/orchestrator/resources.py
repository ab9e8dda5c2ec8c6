"""Resource stores: where successful task content lands."""

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union


class ResourceStore(ABC):
    """Holds the content of the resources tasks create or modify."""

    @abstractmethod
    def read(self, path: str) -> Optional[str]:
        """Return the current content of a resource, or None if it doesn't exist."""

    @abstractmethod
    def write(self, path: str, content: str) -> None:
        """Replace the content of a resource, creating it if needed."""


class InMemoryResourceStore(ResourceStore):
    """Thread-safe in-memory resource tree."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._contents: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def read(self, path: str) -> Optional[str]:
        with self._lock:
            return self._contents.get(path)

    def write(self, path: str, content: str) -> None:
        with self._lock:
            self._contents[path] = content

    def paths(self) -> list:
        with self._lock:
            return sorted(self._contents)


class DirectoryResourceStore(ResourceStore):
    """Resources are files below a root directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser().resolve()

    def read(self, path: str) -> Optional[str]:
        file_path = self._resolve(path)
        if not file_path.is_file():
            return None
        return file_path.read_text(encoding="utf-8")

    def write(self, path: str, content: str) -> None:
        file_path = self._resolve(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")

    def _resolve(self, path: str) -> Path:
        file_path = (self.root / path.lstrip("/")).resolve()
        if not file_path.is_relative_to(self.root):
            raise ValueError(f"Resource path escapes the resource root: {path}")
        return file_path
