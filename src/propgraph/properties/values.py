"""Property value shapes.

Values are stored as JSON. They are checked against the definition's declared
type when written, so readers only ever see:

- scalars (str, int/float, bool) for text, number, date, checkbox, person
- an option id for select, status and priority
- a list of option ids for multi_select, a list of strings for person
"""

import math
from collections.abc import Iterator, Mapping, Sequence
from datetime import date, datetime
from typing import Any

from propgraph.errors import ValidationError
from propgraph.models.properties import OPTION_TYPES, PropertyOption, PropertyType

# Keys checked, in order, on option-shaped objects
OPTION_REFERENCE_KEYS = ("id", "value", "name", "label")


def default_empty_label(name: str, property_type: PropertyType | str) -> str:
    """Label of the no-value group for a definition without an explicit one."""
    if property_type == PropertyType.PERSON:
        return "Unassigned"
    return f"No {name}"


def option_reference(value: Mapping[str, Any]) -> str | None:
    """First non-empty string under ``id``, ``value``, ``name`` or ``label``."""
    for key in OPTION_REFERENCE_KEYS:
        candidate = value.get(key)
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


def _scalar_string(value: Any) -> str | None:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def comparable_strings(value: Any) -> Iterator[str]:
    """Flatten a stored value into lower-cased strings for comparison.

    Lists are flattened; option-shaped objects contribute every scalar found
    under ``id``, ``value``, ``name`` and ``label``, in that order.
    """
    if value is None:
        return
    if isinstance(value, Mapping):
        for key in OPTION_REFERENCE_KEYS:
            text = _scalar_string(value.get(key))
            if text is not None:
                yield text.lower()
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            yield from comparable_strings(item)
        return
    text = _scalar_string(value)
    if text is not None:
        yield text.lower()


def is_empty_value(value: Any) -> bool:
    """None, empty string and empty list count as no value."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


# =============================================================================
# Write-time validation
# =============================================================================


def _resolve_option(raw: Any, options: Sequence[PropertyOption], name: str) -> str:
    if isinstance(raw, Mapping):
        candidates = [
            raw[key] for key in OPTION_REFERENCE_KEYS if isinstance(raw.get(key), str) and raw[key]
        ]
    elif isinstance(raw, str) and raw.strip():
        candidates = [raw]
    else:
        raise ValidationError(f'Invalid option for "{name}": {raw!r}')

    if not options:
        return candidates[0]

    for candidate in candidates:
        for option in options:
            if option.id == candidate:
                return option.id
        lowered = candidate.strip().lower()
        for option in options:
            if option.label.lower() == lowered:
                return option.id
    raise ValidationError(f'Unknown option for "{name}": {candidates[0]!r}')


def _validate_date(value: Any, name: str) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
        except ValueError:
            pass
        else:
            return value
    raise ValidationError(f'"{name}" expects an ISO-8601 date, got {value!r}')


def validate_property_value(
    property_type: PropertyType | str,
    value: Any,
    *,
    options: Sequence[PropertyOption] = (),
    name: str = "property",
) -> Any:
    """Check ``value`` against the declared type and return its stored form.

    ``None`` is accepted for every type and stored as an explicit empty value.
    """
    if value is None:
        return None

    try:
        kind = PropertyType(property_type)
    except ValueError as e:
        raise ValidationError(f"Unsupported property type: {property_type}") from e

    if kind == PropertyType.TEXT:
        if not isinstance(value, str):
            raise ValidationError(f'"{name}" expects text, got {type(value).__name__}')
        return value

    if kind == PropertyType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f'"{name}" expects a number, got {type(value).__name__}')
        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError(f'"{name}" expects a finite number')
        return value

    if kind == PropertyType.CHECKBOX:
        if not isinstance(value, bool):
            raise ValidationError(f'"{name}" expects true or false, got {type(value).__name__}')
        return value

    if kind == PropertyType.DATE:
        return _validate_date(value, name)

    if kind == PropertyType.PERSON:
        if isinstance(value, str):
            return value
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return list(dict.fromkeys(value))
        raise ValidationError(f'"{name}" expects a person id or a list of person ids')

    if kind == PropertyType.MULTI_SELECT:
        items = value if isinstance(value, list) else [value]
        return list(dict.fromkeys(_resolve_option(item, options, name) for item in items))

    if kind in OPTION_TYPES:
        return _resolve_option(value, options, name)

    raise ValidationError(f"Unsupported property type: {kind}")
