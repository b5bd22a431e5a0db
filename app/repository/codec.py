# app/repository/codec.py
"""
JSONB document codecs for the domain dataclasses.

pydantic's TypeAdapter handles nested dataclasses, dates and Literal
checks in both directions, so a stored document that no longer matches the
model fails loudly on load.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, TypeVar

from pydantic import TypeAdapter

T = TypeVar("T")


@lru_cache(maxsize=None)
def _adapter(cls: type) -> TypeAdapter:
    return TypeAdapter(cls)


def to_doc(obj: Any) -> dict[str, Any]:
    return _adapter(type(obj)).dump_python(obj, mode="json")


def from_doc(cls: type[T], doc: dict[str, Any]) -> T:
    return _adapter(cls).validate_python(doc)
