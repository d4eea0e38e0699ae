"""
Settings Schema.

This module provides typed setting declarations for the engine and for plugins.

Key features:
- Typed fields with defaults, bounds and allowed choices
- Validation of whole sections against a schema
- Lenient numeric coercion (TOML integers accepted for float settings)
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Raised when a setting declaration itself is invalid."""

    pass


class ValidationError(SchemaError):
    """Raised when a setting value does not satisfy its declaration."""

    pass


# type -> what min/max are compared against, as named in error messages
_BOUND_LABELS = {
    int: "Value",
    float: "Value",
    str: "String length",
    list: "List length",
}


@dataclass
class ConfigField:
    """
    A single declared setting.

    Attributes:
        type_: Expected value type
        default: Value used when the config file has none
        description: Written as a comment above the key in generated TOML
        min: Lower bound (numbers) or minimum length (str, list)
        max: Upper bound (numbers) or maximum length (str, list)
        choices: Allowed values, if restricted
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None

    def __post_init__(self):
        if self.choices is not None and not isinstance(self.choices, list):
            raise SchemaError(f"choices of a {self.type_.__name__} setting must be a list")

        for candidate in [self.default, *(self.choices or [])]:
            if not _matches_type(candidate, self.type_):
                raise SchemaError(
                    f"{candidate!r} does not match type {self.type_.__name__}"
                )

        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(f"Default {self.default!r} not in choices {self.choices}")

        if self.type_ not in _BOUND_LABELS and (self.min, self.max) != (None, None):
            raise SchemaError(
                "Bounds are only supported for int, float, str and list settings, "
                f"not {self.type_.__name__}"
            )

    def coerce(self, value: Any) -> Any:
        """
        Convert a raw value to the field type where that is lossless.

        Only int -> float is performed; everything else is returned as is and
        left to validate().
        """
        if self.type_ is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        return value

    def validate(self, value: Any) -> None:
        """
        Check a value against the declared type, choices and bounds.

        Raises:
            ValidationError: On the first constraint the value breaks
        """
        if not _matches_type(value, self.type_):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.choices is not None and value not in self.choices:
            raise ValidationError(f"{value!r} is not in allowed choices {self.choices}")

        label = _BOUND_LABELS.get(self.type_)
        if label is None:
            return

        measured = len(value) if self.type_ in (str, list) else value
        if self.min is not None and measured < self.min:
            raise ValidationError(f"{label} {measured} is less than minimum {self.min}")
        if self.max is not None and measured > self.max:
            raise ValidationError(f"{label} {measured} is greater than maximum {self.max}")


def _matches_type(value: Any, type_: type) -> bool:
    # bool is an int subclass; a True must not pass as a port number
    if isinstance(value, bool) and type_ is not bool:
        return False
    return isinstance(value, type_)


def resolve_section(
    section: dict[str, Any], schema: dict[str, ConfigField]
) -> dict[str, Any]:
    """
    Merge a config file section over the schema defaults and validate it.

    Keys missing from the section take their default, so adding a setting to a
    schema never invalidates an existing config file.

    Raises:
        ValidationError: On unknown keys or invalid values
    """
    unknown = sorted(set(section) - set(schema))
    if unknown:
        raise ValidationError(f"Unknown configuration field: {', '.join(unknown)}")

    resolved = {}
    for key, setting in schema.items():
        value = setting.coerce(section.get(key, setting.default))
        try:
            setting.validate(value)
        except ValidationError as e:
            raise ValidationError(f"Field '{key}': {e}") from e
        resolved[key] = value

    return resolved
