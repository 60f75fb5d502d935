"""Keyed record storage with a per-operation undo journal."""

from __future__ import annotations

import copy
import hashlib
from typing import Any, ItemsView, TypeVar, ValuesView

V = TypeVar("V")

_MISSING = object()


def record_key(kind: str, *parts: Any) -> str:
    """Deterministic record id: hex SHA-256 of the kind tag and its parts.

    Two distinct inputs mapping to the same id would merge records. With a
    256-bit digest the chance is negligible and accepted as such.
    """
    payload = "|".join([kind, *(str(p) for p in parts)])
    return "0x" + hashlib.sha256(payload.encode()).hexdigest()


class RecordStore(dict[str, V]):
    """Mapping of record id -> record that can undo one operation.

    Between ``begin`` and ``commit``/``rollback`` every record the operation
    reaches (by key lookup, assignment, deletion or iteration) is copied the
    first time it is touched. ``rollback`` puts back those copies and drops
    keys that did not exist before; untouched records are never copied.
    Rollback happens in place so components holding the store keep seeing
    the live contents.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._journal: dict[str, Any] | None = None

    # -- journal ---------------------------------------------------------

    @property
    def journaling(self) -> bool:
        return self._journal is not None

    def begin(self) -> None:
        self._journal = {}

    def commit(self) -> None:
        self._journal = None

    def rollback(self) -> None:
        journal, self._journal = self._journal or {}, None
        for key, original in journal.items():
            if original is _MISSING:
                super().pop(key, None)
            else:
                super().__setitem__(key, original)

    def touched(self) -> set[str]:
        """Keys saved by the current journal."""
        return set(self._journal or ())

    def _remember(self, key: str) -> None:
        if self._journal is None or key in self._journal:
            return
        if super().__contains__(key):
            self._journal[key] = copy.deepcopy(super().__getitem__(key))
        else:
            self._journal[key] = _MISSING

    # -- dict access -----------------------------------------------------

    def __getitem__(self, key: str) -> V:
        self._remember(key)
        return super().__getitem__(key)

    def get(self, key: str, default: Any = None) -> Any:
        self._remember(key)
        return super().get(key, default)

    def __setitem__(self, key: str, value: V) -> None:
        self._remember(key)
        super().__setitem__(key, value)

    def __delitem__(self, key: str) -> None:
        self._remember(key)
        super().__delitem__(key)

    def values(self) -> ValuesView[V]:
        if self._journal is not None:
            for key in list(self):
                self._remember(key)
        return super().values()

    def items(self) -> ItemsView[str, V]:
        if self._journal is not None:
            for key in list(self):
                self._remember(key)
        return super().items()
