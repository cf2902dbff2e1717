"""Long-term core memory over an abstract key-value store."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from ctxstitch.markup import escape_xml, sanitize_tag, scan_tags
from ctxstitch.prompts.memory import DELETE_TAG, UPDATE_TAG, core_memory_block

MemoryUpdateHook = Callable[[str, "str | None", "str | None"], Any]


@dataclass(frozen=True)
class MemoryEntry:
    key: str
    value: str


def _render_entries(entries: list[MemoryEntry]) -> str:
    if not entries:
        return ""
    lines = []
    for entry in entries:
        tag = sanitize_tag(entry.key)
        lines.append(f"  <{tag}>{escape_xml(entry.value)}</{tag}>")
    inner = "\n".join(lines)
    return f"<core_memory>\n{inner}\n</core_memory>"


class MemoryStore(ABC):
    """Abstract read/write-by-key backend. Persistence lives outside this package."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value or None."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if it existed."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """All keys, in insertion order where the backend has one."""

    def snapshot(self) -> dict[str, str] | None:
        """Capture the whole store, if the backend supports it."""
        return None

    def restore(self, data: dict[str, str]) -> None:
        """Replace the whole store, if the backend supports it."""


class InMemoryStore(MemoryStore):
    """Process-local store, mainly for tests and short-lived agents."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def keys(self) -> list[str]:
        return list(self._data)

    def snapshot(self) -> dict[str, str] | None:
        return dict(self._data)

    def restore(self, data: dict[str, str]) -> None:
        self._data = dict(data)


class Memory:
    """
    Core memory the model can read and edit.

    The model edits memory by emitting ``<update_core_memory key="k">v</update_core_memory>``
    or ``<delete_core_memory key="k"/>`` in its output; :meth:`extract_and_apply`
    applies those edits subject to ``allowed_keys`` and the ``on_update`` veto.
    """

    def __init__(
        self,
        store: MemoryStore,
        allowed_keys: list[str] | None = None,
        on_update: MemoryUpdateHook | None = None,
    ):
        self.store = store
        self.allowed_keys = allowed_keys
        self.on_update = on_update

    async def get(self, key: str) -> str | None:
        return await self.store.get(key)

    async def set(self, key: str, value: str) -> None:
        await self.store.set(key, value)

    async def delete(self, key: str) -> bool:
        return await self.store.delete(key)

    async def get_all(self) -> list[MemoryEntry]:
        entries = []
        for key in await self.store.keys():
            value = await self.store.get(key)
            if value is not None:
                entries.append(MemoryEntry(key, value))
        return entries

    async def to_xml(self) -> str:
        """Render all entries as a ``<core_memory>`` block, or "" when empty."""
        return _render_entries(await self.get_all())

    async def to_prompt(self) -> str:
        """The ``<core_memory>`` block wrapped in editing instructions, or "" when empty."""
        entries = await self.get_all()
        if not entries:
            return ""
        return core_memory_block(
            _render_entries(entries),
            [e.key for e in entries],
            self.allowed_keys,
        )

    async def extract_and_apply(self, content: str) -> list[MemoryEntry]:
        """Apply memory edits found in ``content``; return the updates applied."""
        applied: list[MemoryEntry] = []

        for match in scan_tags(content, UPDATE_TAG):
            key = match.attrs.get("key")
            if not key or match.body is None:
                continue
            value = match.body.strip()
            if not await self._permitted(key, value):
                continue
            await self.store.set(key, value)
            applied.append(MemoryEntry(key, value))

        for match in scan_tags(content, DELETE_TAG):
            key = match.attrs.get("key")
            if not key or not match.self_closing:
                continue
            if not await self._permitted(key, None):
                continue
            await self.store.delete(key)

        if applied:
            logger.debug(f"Core memory updated: {[e.key for e in applied]}")
        return applied

    async def _permitted(self, key: str, value: str | None) -> bool:
        if self.allowed_keys is not None and key not in self.allowed_keys:
            logger.debug(f"Core memory edit for '{key}' ignored: key not allowed")
            return False
        if self.on_update is None:
            return True
        old_value = await self.store.get(key)
        result = self.on_update(key, value, old_value)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    def snapshot(self) -> dict[str, str] | None:
        return self.store.snapshot()

    def restore(self, data: dict[str, str]) -> None:
        self.store.restore(data)
