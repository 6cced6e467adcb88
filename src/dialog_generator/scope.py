"""Read-only evaluation scope narrowed by copy-and-extend."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any


class Scope(Mapping[str, Any]):
    """Key/value context passed to templates and expressions.

    A scope is never mutated once built. ``extend`` and ``without`` return
    narrower or wider copies, so leaving a level of the run is just dropping
    the child scope. Values such as the file tracker or the used-utterance
    set are shared by reference between a scope and its children.
    """

    def __init__(self, values: Mapping[str, Any] | None = None, **extra: Any):
        self._values: dict[str, Any] = {**(values or {}), **extra}

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(name) from None

    def __repr__(self) -> str:
        return f"Scope({sorted(self._values)})"

    def extend(self, values: Mapping[str, Any] | None = None, **extra: Any) -> Scope:
        """Return a copy with ``values`` and ``extra`` added or replaced."""
        return Scope({**self._values, **(values or {}), **extra})

    def without(self, *keys: str) -> Scope:
        """Return a copy with ``keys`` removed."""
        return Scope({key: value for key, value in self._values.items() if key not in keys})
