# app/results.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from app.errors import EngineError


@dataclass(frozen=True)
class OperationResult:
    """Envelope returned by every PoolStateManager operation."""

    ok: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None

    @classmethod
    def success(cls, data: Optional[dict[str, Any]] = None) -> "OperationResult":
        return cls(ok=True, data=data or {})

    @classmethod
    def failure(cls, exc: EngineError) -> "OperationResult":
        return cls(ok=False, error=exc.to_dict())

    @property
    def error_code(self) -> Optional[str]:
        return self.error["code"] if self.error else None
