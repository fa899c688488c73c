"""Resultados etiquetados: Ok / Degraded / Fail."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from cgm_insights.errors import DegradationReason

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Complete result."""

    value: T

    @property
    def is_degraded(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Degraded(Generic[T]):
    """Usable but reduced result, with the reason it was reduced."""

    value: T
    reason: DegradationReason
    detail: str = ""

    @property
    def is_degraded(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Fail:
    """Terminal failure; ``unwrap`` re-raises the original error."""

    error: Exception

    @property
    def is_degraded(self) -> bool:
        return False

    def unwrap(self) -> None:
        raise self.error
