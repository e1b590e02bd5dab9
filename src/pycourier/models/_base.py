"""Base model for inbound realtime events.

Every inbound event model inherits from :class:`CourierEventModel`, which
provides:

* A ``model_validator(mode="before")`` that strips empty values
  (``None``, ``""``) so field defaults apply, and stashes the original
  payload in ``raw``.
* An ``_unwrap`` hook so a model can flatten the nested shapes the backend
  emits (e.g. ``{"order_id": ..., "courier": {"location": ...}}``) before
  field validation.
* :data:`EventTimestamp`, which accepts ISO-8601 strings and epoch
  seconds or milliseconds and always yields a timezone-aware UTC datetime.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def _from_epoch(value: float) -> datetime:
    ts = float(value)
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    try:
        return datetime.fromtimestamp(ts, tz=UTC)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"timestamp out of range: {value!r}") from exc


def parse_timestamp(value: Any) -> Any:
    """Coerce an event timestamp to a UTC datetime.

    Values that cannot be interpreted are returned unchanged so that field
    validation reports them.
    """
    if value is None:
        return value
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return _from_epoch(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return _from_epoch(float(text))
        except ValueError:
            pass
        parsed = datetime.fromisoformat(text)
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return value


EventTimestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Required timestamp coerced from ISO strings or epoch seconds/ms."""

OptionalTimestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Optional variant of :data:`EventTimestamp`."""

NonEmptyStr = Annotated[str, Field(min_length=1)]


def utcnow() -> datetime:
    return datetime.now(UTC)


class CourierEventModel(BaseModel):
    """Base for inbound event payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original payload (as received)."""

    @classmethod
    def _unwrap(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Flatten nested payload shapes. Subclasses override."""
        return values

    @staticmethod
    def _lift(values: dict[str, Any], nested_key: str, mapping: dict[str, str] | None = None) -> dict[str, Any]:
        """Copy keys of ``values[nested_key]`` to the top level without overwriting.

        *mapping* renames nested keys on the way up
        (``{"current": "new_status"}``).
        """
        nested = values.get(nested_key)
        if not isinstance(nested, dict):
            return values
        merged = {k: v for k, v in values.items() if k != nested_key}
        for key, value in nested.items():
            target = (mapping or {}).get(key, key)
            merged.setdefault(target, value)
        return merged

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Drop empty values, flatten nested shapes and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        original = dict(values)
        flattened = cls._unwrap(original)
        cleaned: dict[str, Any] = {}
        for key, value in flattened.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            cleaned[key] = value
        if "raw" not in values:
            cleaned["raw"] = original
        return cleaned
