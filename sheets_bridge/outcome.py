"""Result type for best-effort operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Outcome:
    """Result of a fire-and-forget operation.

    Truthy when the operation succeeded. Callers may inspect ``reason`` on
    failure but are never required to.
    """

    ok: bool
    reason: str | None = None

    @classmethod
    def success(cls) -> Outcome:
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: str) -> Outcome:
        return cls(ok=False, reason=reason)

    def __bool__(self) -> bool:
        return self.ok
