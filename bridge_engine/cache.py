"""Persistence for the tracked asset address lists."""

from pathlib import Path
from typing import Dict, List, Protocol, Sequence, Tuple
import json

from .models import AssetKind


class CacheStore(Protocol):
    def load(self, kind: AssetKind) -> Tuple[str, ...]:
        ...

    def save(self, kind: AssetKind, addresses: Sequence[str]) -> None:
        ...

    def clear(self, kind: AssetKind) -> None:
        ...


class MemoryCacheStore:
    def __init__(self) -> None:
        self._entries: Dict[AssetKind, Tuple[str, ...]] = {}

    def load(self, kind: AssetKind) -> Tuple[str, ...]:
        return self._entries.get(kind, ())

    def save(self, kind: AssetKind, addresses: Sequence[str]) -> None:
        self._entries[kind] = tuple(addresses)

    def clear(self, kind: AssetKind) -> None:
        self._entries.pop(kind, None)


class FileCacheStore:
    """JSON document keyed by asset kind value."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self, kind: AssetKind) -> Tuple[str, ...]:
        return tuple(self._read_all().get(kind.value, []))

    def save(self, kind: AssetKind, addresses: Sequence[str]) -> None:
        data = self._read_all()
        data[kind.value] = list(addresses)
        self._write_all(data)

    def clear(self, kind: AssetKind) -> None:
        data = self._read_all()
        if data.pop(kind.value, None) is not None:
            self._write_all(data)

    def _read_all(self) -> Dict[str, List[str]]:
        if not self._path.exists():
            return {}
        return json.loads(self._path.read_text())

    def _write_all(self, data: Dict[str, List[str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2))
