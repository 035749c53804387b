"""Counter variables.

The engine never owns variable state. It is handed three callbacks:

    has(name, threshold=1)  value >= threshold
    increment(name)         +name
    decrement(name)         -name, removing the key when it reaches 0

`VariableStore` is the in-memory provider used by sessions, the HTTP
surface and the tests. Names are trimmed and lowercased; values never go
negative.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass


def _never(name: str, threshold: int = 1) -> bool:
    return False


def _ignore(name: str) -> None:
    return None


@dataclass(frozen=True)
class VariableCallbacks:
    has: Callable[..., bool] = _never
    increment: Callable[[str], None] = _ignore
    decrement: Callable[[str], None] = _ignore


def normalize_name(name: str) -> str:
    return name.strip().lower()


class VariableStore:
    def __init__(self, initial: dict[str, int] | None = None) -> None:
        self._values: dict[str, int] = {}
        for name, value in (initial or {}).items():
            if value > 0:
                self._values[normalize_name(name)] = int(value)

    def has(self, name: str, threshold: int = 1) -> bool:
        return self._values.get(normalize_name(name), 0) >= threshold

    def get(self, name: str) -> int:
        return self._values.get(normalize_name(name), 0)

    def increment(self, name: str) -> None:
        key = normalize_name(name)
        self._values[key] = self._values.get(key, 0) + 1

    def decrement(self, name: str) -> None:
        key = normalize_name(name)
        current = self._values.get(key, 0)
        if current <= 1:
            self._values.pop(key, None)
        else:
            self._values[key] = current - 1

    def reset(self) -> None:
        self._values.clear()

    def snapshot(self) -> dict[str, int]:
        return dict(self._values)

    def format_for_display(self) -> list[str]:
        """`["gold (5)", "sword"]` — counts shown only above one."""
        return [
            f"{key} ({count})" if count > 1 else key
            for key, count in sorted(self._values.items())
        ]

    def callbacks(self) -> VariableCallbacks:
        return VariableCallbacks(
            has=self.has,
            increment=self.increment,
            decrement=self.decrement,
        )
