import math
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .errors import TypeMismatch


class FieldKind(Enum):
    """The closed set of value kinds a datalog column can hold."""
    STRING = "string"
    INT = "int"
    DOUBLE = "double"
    BOOL = "bool"

    @property
    def default(self):
        return _DEFAULTS[self]


_DEFAULTS = {
    FieldKind.STRING: "",
    FieldKind.INT: 0,
    FieldKind.DOUBLE: 0.0,
    FieldKind.BOOL: False,
}


def parse_format_spec(spec: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Parse a decimal pattern such as "0.00" or "0.0#".

    Returns (min_fraction_digits, max_fraction_digits), or None when no spec
    is given. Fraction digits written as '0' are always printed, '#' digits
    are printed only when they are not trailing zeros.
    """
    if spec is None:
        return None
    whole, dot, fraction = spec.partition(".")
    if not spec or set(whole) - {"0", "#"} or set(fraction) - {"0", "#"}:
        raise ValueError(f"Invalid format spec: {spec!r}")
    if dot and not fraction:
        raise ValueError(f"Format spec {spec!r} has no fraction digits")
    # Optional digits may only follow the mandatory ones, as in "0.0#"
    if "#0" in fraction:
        raise ValueError(f"Format spec {spec!r} has a mandatory digit after an optional one")
    return fraction.count("0"), len(fraction)


def format_double(value: float, digits: Optional[Tuple[int, int]] = None) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if digits is None:
        if isinstance(value, np.floating) and not isinstance(value, float):
            # float32/float16: shortest text for their own precision, not float64's
            return np.format_float_positional(value, trim="0")
        return repr(float(value))

    min_digits, max_digits = digits
    text = f"{value:.{max_digits}f}"
    if max_digits > min_digits:
        whole, _, fraction = text.partition(".")
        fraction = fraction.rstrip("0").ljust(min_digits, "0")
        text = f"{whole}.{fraction}" if fraction else whole
    return text


def _is_bool(value):
    return isinstance(value, (bool, np.bool_))


def coerce_value(kind: FieldKind, value):
    """Check `value` against `kind` and normalise numpy scalars to builtins."""
    if kind is FieldKind.STRING:
        if isinstance(value, str):
            return str(value)
    elif kind is FieldKind.BOOL:
        if _is_bool(value):
            return bool(value)
    elif kind is FieldKind.INT:
        if isinstance(value, (int, np.integer)) and not _is_bool(value):
            return int(value)
    elif kind is FieldKind.DOUBLE:
        # Integers widen to double, booleans do not
        if isinstance(value, (float, int, np.floating, np.integer)) and not _is_bool(value):
            return float(value)
    return None


class Field:
    """
    A named, typed register holding the most recent value for one column.

    The kind is fixed at construction. The value starts at the kind's default
    and keeps whatever was assigned last until it is assigned again, so a row
    captured without updating this field repeats the previous value.
    """
    def __init__(self, name: str, kind: FieldKind, format_spec: Optional[str] = None):
        if not isinstance(kind, FieldKind):
            raise TypeError(f"kind must be a FieldKind, got {kind!r}")
        if format_spec is not None and kind is not FieldKind.DOUBLE:
            raise ValueError("Format specs only apply to double fields")
        self._name = name
        self._kind = kind
        self._format_spec = format_spec
        self._digits = parse_format_spec(format_spec)
        self._value = kind.default
        # numpy float type of the last double assigned, when narrower than float64
        self._float_type = None
        # Set once a datalog takes ownership of this field
        self._bound = False

    @classmethod
    def string(cls, name):
        return cls(name, FieldKind.STRING)

    @classmethod
    def integer(cls, name):
        return cls(name, FieldKind.INT)

    @classmethod
    def double(cls, name, format_spec=None):
        return cls(name, FieldKind.DOUBLE, format_spec)

    @classmethod
    def boolean(cls, name):
        return cls(name, FieldKind.BOOL)

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> FieldKind:
        return self._kind

    @property
    def format_spec(self) -> Optional[str]:
        return self._format_spec

    @property
    def value(self):
        return self._value

    @value.setter
    def value(self, new_value):
        self.set_value(new_value)

    def set_value(self, new_value):
        coerced = coerce_value(self._kind, new_value)
        if coerced is None:
            raise TypeMismatch(
                f"Field {self._name!r} holds {self._kind.value} values, "
                f"got {type(new_value).__name__}",
                field_name=self._name,
                value=new_value,
            )
        self._value = coerced
        if self._kind is FieldKind.DOUBLE:
            narrow = isinstance(new_value, np.floating) and not isinstance(new_value, float)
            self._float_type = type(new_value) if narrow else None

    def format(self) -> str:
        kind = self._kind
        if kind is FieldKind.STRING:
            return self._value
        if kind is FieldKind.BOOL:
            return "1" if self._value else "0"
        if kind is FieldKind.INT:
            return str(self._value)
        value = self._value
        if self._float_type is not None:
            value = self._float_type(value)
        return format_double(value, self._digits)

    def __repr__(self):
        return f"Field({self._name!r}, {self._kind.name}, value={self._value!r})"
