"""Persistence collaborator: loads and saves the whole Document.

The core only needs `load()` and `save(document)`; any failure comes back as
PersistenceFailure and is never retried here.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from oraculo.errors import PersistenceFailure
from oraculo.models import Document


class DocumentStore(Protocol):
    def load(self) -> Document: ...

    def save(self, document: Document) -> None: ...


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Atomic JSON write: temp file + flock + fsync + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


class JsonDocumentStore:
    """Document kept as a single JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Document:
        """Read the document; a missing or blank file yields an empty one."""
        if not self.path.exists():
            return Document()
        try:
            text = self.path.read_text(encoding="utf-8")
            data = json.loads(text) if text.strip() else {}
        except (OSError, ValueError) as e:
            raise PersistenceFailure(f"Could not load {self.path}: {e}") from e
        return Document.from_dict(data)

    def save(self, document: Document) -> None:
        try:
            write_json_atomic(self.path, document.to_dict())
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Could not save {self.path}: {e}") from e


class MemoryDocumentStore:
    """In-process store holding the serialized dict; round-trips like the file store."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data = data or {}
        self.saves = 0

    def load(self) -> Document:
        return Document.from_dict(json.loads(json.dumps(self.data)))

    def save(self, document: Document) -> None:
        self.data = json.loads(json.dumps(document.to_dict()))
        self.saves += 1
