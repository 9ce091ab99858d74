"""
Contracts between pgkv and the host application.

The host defines a generic storage capability and a one-shot initializer
hook. It constructs a storage adapter, awaits ``handle()`` once during
startup, and only then routes storage calls to it.

Protocols:
    - **KeyValueStorage:** the five async storage operations
    - **Initializer:** the startup hook the host awaits before use

Any object matching the ``KeyValueStorage`` shape satisfies it; no
registration or inheritance is needed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any, Protocol, TypeVar, runtime_checkable

V = TypeVar("V")


@runtime_checkable
class KeyValueStorage(Protocol[V]):
    """Generic string-keyed storage capability.

    Methods:
        get(key)        : stored value, or ``None`` when absent
        has(key)        : whether the key is stored
        set(key, value) : insert or overwrite, returns the storage itself
        delete(key)     : ``True`` if a value was removed
        entries()       : async iterator over every (key, value) pair
    """

    async def get(self, key: str) -> V | None: ...

    async def has(self, key: str) -> bool: ...

    async def set(self, key: str, value: V) -> Any: ...

    async def delete(self, key: str) -> bool: ...

    def entries(self) -> AsyncIterator[tuple[str, V]]: ...


class Initializer(ABC):
    """Startup hook awaited once by the host before the component is used."""

    @abstractmethod
    async def handle(self) -> None:
        """Run the one-time initialization."""


__all__ = [
    "KeyValueStorage",
    "Initializer",
]
