"""Artifact storage for analysis results.

An ArtifactStore is a flat key -> bytes store. ArtifactRepository sits
on top of it: it maps units to keys and serializes results as JSON.

Key layout (stable across runs, which is what makes resumption work)::

    <document>/chapter_<c>/p_<p>.json           paragraph p of chapter c
    <document>/chapter_<c>/analysis.json        chapter c
    <document>/inter_chapter_<c>_<d>.json       chapters c -> d
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import uuid
from pathlib import Path, PurePosixPath
from typing import Any, Protocol, runtime_checkable

import orjson

from booklens.models.documents import UnitKind
from booklens.models.tasks import Task

logger = logging.getLogger(__name__)


def artifact_key(
    document_id: str,
    chapter_index: int,
    kind: UnitKind | str,
    sub_index: int | None = None,
) -> str:
    """Deterministic key for a unit's result.

    Args:
        document_id: Document identifier
        chapter_index: Chapter (first chapter for inter-chapter pairs)
        kind: Unit kind
        sub_index: Paragraph index, or the second chapter for pairs

    Raises:
        ValueError: If sub_index is missing for paragraph or pair keys

    Examples:
        >>> artifact_key("dracula", 3, UnitKind.PARAGRAPH, 7)
        'dracula/chapter_3/p_7.json'
        >>> artifact_key("dracula", 2, UnitKind.INTER_CHAPTER, 3)
        'dracula/inter_chapter_2_3.json'
    """
    kind = UnitKind(kind)
    if kind is UnitKind.CHAPTER:
        return f"{document_id}/chapter_{chapter_index}/analysis.json"
    if sub_index is None:
        raise ValueError(f"{kind.value} keys need a sub_index")
    if kind is UnitKind.PARAGRAPH:
        return f"{document_id}/chapter_{chapter_index}/p_{sub_index}.json"
    return f"{document_id}/inter_chapter_{chapter_index}_{sub_index}.json"


@runtime_checkable
class ArtifactStore(Protocol):
    """Key-addressable byte store."""

    async def exists(self, key: str) -> bool: ...

    async def read(self, key: str) -> bytes: ...

    async def write(self, key: str, data: bytes) -> None: ...


class LocalArtifactStore:
    """Stores artifacts as files under a root directory.

    Writes go to a temporary file that is renamed into place, so two
    writers racing on one key leave one complete file (last write wins).
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid artifact key: {key}")
        return self.root.joinpath(*relative.parts)

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self.path_for(key).is_file)

    async def read(self, key: str) -> bytes:
        return await asyncio.to_thread(self.path_for(key).read_bytes)

    async def write(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._write_atomic, self.path_for(key), data)

    def list_keys(self, prefix: str = "") -> list[str]:
        base = self.path_for(prefix) if prefix else self.root
        if not base.exists():
            return []
        return sorted(
            p.relative_to(self.root).as_posix()
            for p in base.rglob("*.json")
            if p.is_file()
        )

    @staticmethod
    def _write_atomic(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=f".{uuid.uuid4().hex[:8]}"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class InMemoryArtifactStore:
    """Dict-backed store for tests and dry runs."""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.writes: list[str] = []

    async def exists(self, key: str) -> bool:
        return key in self.data

    async def read(self, key: str) -> bytes:
        try:
            return self.data[key]
        except KeyError:
            raise FileNotFoundError(key) from None

    async def write(self, key: str, data: bytes) -> None:
        self.writes.append(key)
        self.data[key] = data

    def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


class ArtifactRepository:
    """Maps tasks to keys and (de)serializes their results."""

    def __init__(self, store: ArtifactStore, document_id: str):
        self.store = store
        self.document_id = document_id

    def key_for(self, task: Task) -> str:
        return artifact_key(self.document_id, task.chapter_index, task.kind, task.sub_index)

    async def load(self, task: Task) -> Any | None:
        """Stored result for the task, or None if there is none.

        A stored value that is not valid JSON (e.g. a truncated write from
        an older run) counts as missing, so the unit is recomputed and the
        value overwritten.
        """
        key = self.key_for(task)
        if not await self.store.exists(key):
            return None
        try:
            return orjson.loads(await self.store.read(key))
        except orjson.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable artifact {key}: {e}")
            return None

    async def save(self, task: Task, result: Any) -> str:
        key = self.key_for(task)
        await self.store.write(key, dumps(result))
        return key


def dumps(value: Any) -> bytes:
    """Serialize a result as indented UTF-8 JSON."""
    return orjson.dumps(value, option=orjson.OPT_INDENT_2, default=_default)


def _default(obj: Any) -> Any:
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    raise TypeError(f"Cannot serialize {type(obj)}")


__all__ = [
    "ArtifactRepository",
    "ArtifactStore",
    "InMemoryArtifactStore",
    "LocalArtifactStore",
    "artifact_key",
    "dumps",
]
