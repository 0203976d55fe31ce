"""
Schema validation at the dispatcher / reconciler boundary.

Every command declares an entry schema and an argument schema (pydantic
models); these helpers are the only place raw data is turned into them.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ArgumentError, EntryValidationError

M = TypeVar("M", bound=BaseModel)


def _describe(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc") or ()) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def validate_entry(schema: type[M], raw: Any) -> M:
    if isinstance(raw, schema):
        return raw
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        raise EntryValidationError(f"{schema.__name__}: {_describe(e)}") from e


def validate_args(schema: type[M], raw: dict[str, Any] | None) -> M:
    try:
        return schema.model_validate(raw or {})
    except ValidationError as e:
        raise ArgumentError(_describe(e)) from e


def serialize(model: BaseModel) -> dict[str, Any]:
    """Plain JSON-compatible map; absent optionals are dropped."""
    return model.model_dump(mode="json", exclude_none=True)
