"""
Conversions between validated records and plain payloads.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

TModel = TypeVar("TModel", bound=BaseModel)


def to_record(model: Type[TModel], data: Mapping[str, Any]) -> TModel:
    """
    Validate `data` into `model`, translating pydantic failures.

    Raises:
        ValidationError: with the offending field and pydantic's error list
    """
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(
            f"Invalid {model.__name__}: {first.get('msg', 'validation failed')}",
            field=field,
            details={"errors": [
                {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg")}
                for err in errors
            ]},
        ) from e


def to_payload(record: BaseModel) -> Dict[str, Any]:
    """JSON-compatible dict keyed by python field names."""
    return record.model_dump(mode="json")


def normalize_input(model: Type[BaseModel], data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Map camelCase aliases in `data` to field names.

    Raises:
        ValidationError: on keys that are neither a field nor an alias
    """
    by_alias = {
        (info.alias or name): name for name, info in model.model_fields.items()
    }
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key in model.model_fields:
            normalized[key] = value
        elif key in by_alias:
            normalized[by_alias[key]] = value
        else:
            raise ValidationError(f"Unknown field '{key}' for {model.__name__}", field=key)
    return normalized


def diff_payloads(before: Mapping[str, Any], after: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Field-level delta as {field: {"from": old, "to": new}}."""
    return {
        key: {"from": before.get(key), "to": value}
        for key, value in after.items()
        if before.get(key) != value
    }
