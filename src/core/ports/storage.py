# -*- coding: utf-8 -*-
"""
Storage Port Interface

Defines the durable key/value store used for the cassette library and the
session snapshot.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class IKeyValueStore(Protocol):
    """Key/Value Store Interface

    Current implementation: PersistenceGateway (SQLite app_state table)
    """

    def get(self, key: str) -> Optional[bytes]:
        """Stored bytes, None when the key is absent"""
        ...

    def set(self, key: str, value: bytes) -> None:
        """Store bytes; raises PersistenceError when the write fails"""
        ...

    def remove(self, key: str) -> None:
        ...
