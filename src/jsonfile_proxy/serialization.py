from __future__ import annotations

import math
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

from .errors import FormatError
from .models import Envelope

_PASSTHROUGH_TYPES = (bool, int, str, type(None))


def to_json_value(value: Any) -> bool | int | float | str | None | list[Any] | dict[str, Any]:
    """Recursively convert a record field value into JSON primitives.

    Record snapshots are mostly primitives already, but fields may also carry
    pydantic models, dates, UUIDs, decimals or enums.

    Raises:
        TypeError: If value contains a type with no JSON representation, or a
            non-finite float.
    """
    if isinstance(value, _PASSTHROUGH_TYPES):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            raise TypeError(f"Cannot serialize non-finite float to JSON: {value!r}")
        return value

    if isinstance(value, BaseModel):
        return to_json_value(value.model_dump(mode="json"))

    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]

    if isinstance(value, Enum):
        return to_json_value(value.value)

    if isinstance(value, (datetime, date, time)):
        return value.isoformat()

    if isinstance(value, UUID):
        return str(value)

    if isinstance(value, Decimal):
        if not value.is_finite():
            raise TypeError(f"Cannot serialize non-finite Decimal to JSON: {value!r}")
        return float(value)

    raise TypeError(
        f"Cannot serialize type {type(value).__name__} to JSON. "
        f"Convert to a JSON-compatible type first."
    )


def to_envelope_json(data: dict[str, Any] | list[dict[str, Any]]) -> str:
    """Render record data as compact ``{"data": ...}`` envelope text.

    Integers keep full precision and floats keep their float form, so a
    fetch restores exactly what was saved. Field order is preserved.

    Raises:
        FormatError: If the data holds unsupported types or non-finite floats.
    """
    try:
        return Envelope(data=to_json_value(data)).model_dump_json()
    except (TypeError, ValidationError, PydanticSerializationError) as exc:
        raise FormatError(f"cannot serialize dataset: {exc}") from exc
