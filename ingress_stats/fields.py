"""Typed field values produced from the raw strings a template match yields.

Every raw value becomes a :class:`FieldValue` tagged with its kind. The
nginx "no value" sentinel ``-`` becomes an explicit ``ABSENT`` value, so a
missing field and a field of the wrong type are both reported as
:class:`FieldCoercionError` when a record is built.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from ingress_stats.errors import FieldCoercionError

NO_VALUE = "-"

_INT_RE = re.compile(r"[+-]?\d+", re.ASCII)
_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


class FieldKind(Enum):
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    ABSENT = "absent"


@dataclass(frozen=True)
class FieldValue:
    kind: FieldKind
    value: int | float | str | None = None

    @property
    def absent(self) -> bool:
        return self.kind is FieldKind.ABSENT


ABSENT = FieldValue(FieldKind.ABSENT)


def coerce_value(raw: str) -> FieldValue:
    """Type a single raw value.

    ``-`` is absent; a value containing a dot is a float if it parses as one
    and a string otherwise; anything else is an int if it parses as one.
    """
    if raw == NO_VALUE:
        return ABSENT
    if "." in raw:
        if _FLOAT_RE.fullmatch(raw):
            return FieldValue(FieldKind.FLOAT, float(raw))
    elif _INT_RE.fullmatch(raw):
        return FieldValue(FieldKind.INT, int(raw))
    return FieldValue(FieldKind.STRING, raw)


class TypedFields:
    """Read-only view of coerced fields with validating accessors."""

    def __init__(self, values: Mapping[str, FieldValue]):
        self._values = {k: v for k, v in values.items() if not v.absent}

    def __getitem__(self, name: str) -> FieldValue:
        return self._values.get(name, ABSENT)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def names(self) -> list[str]:
        return sorted(self._values)

    def require_str(self, name: str) -> str:
        return self._require(name, FieldKind.STRING)

    def require_int(self, name: str) -> int:
        return self._require(name, FieldKind.INT)

    def require_float(self, name: str) -> float:
        fv = self[name]
        if fv.kind is FieldKind.INT:
            return float(fv.value)
        return self._require(name, FieldKind.FLOAT)

    def optional_str(self, name: str) -> str | None:
        fv = self[name]
        return fv.value if fv.kind is FieldKind.STRING else None

    def _require(self, name: str, kind: FieldKind):
        fv = self[name]
        if fv.absent:
            raise FieldCoercionError(name, f"field {name} does not exist")
        if fv.kind is not kind:
            raise FieldCoercionError(
                name, f"field {name} is {fv.kind.value}, expected {kind.value}"
            )
        return fv.value


def coerce_fields(raw: Mapping[str, str]) -> TypedFields:
    """Coerce every raw match value; absent values are dropped."""
    return TypedFields({name: coerce_value(value) for name, value in raw.items()})
