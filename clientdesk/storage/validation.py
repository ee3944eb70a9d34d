"""
Pluggable record validation.

A store holds one Validator and calls ``validate(record)`` before every
create, update and bulk update when validation is enabled. Validators raise
ValidationError and return None on success. Entity modules build theirs by
composing the rules below with AllOf.
"""
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from clientdesk.exceptions import ValidationError
from clientdesk.timeutils import parse_timestamp


class Validator(ABC):
    """Validation capability for one entity kind."""

    @abstractmethod
    def validate(self, record: Mapping[str, Any]) -> None:
        """Raise ValidationError if record is not acceptable."""


def is_missing(value: Any) -> bool:
    """True for None, blank strings and empty collections; 0 and False are present."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


class RequiredFields(Validator):
    """Every listed field must be present and non-empty."""

    def __init__(self, fields: Sequence[str]):
        self.fields = list(fields)

    def validate(self, record: Mapping[str, Any]) -> None:
        missing = [field for field in self.fields if is_missing(record.get(field))]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                field=missing[0],
                context={"missing_fields": missing}
            )


class PatternRule(Validator):
    """A field, when present, must fully match a regular expression."""

    def __init__(self, field: str, pattern: str, message: Optional[str] = None):
        self.field = field
        self.pattern = re.compile(pattern)
        self.message = message or f"Invalid format for {field}"

    def validate(self, record: Mapping[str, Any]) -> None:
        value = record.get(self.field)
        if is_missing(value):
            return
        if not isinstance(value, str) or not self.pattern.fullmatch(value):
            raise ValidationError(self.message, field=self.field, value=value)


class ChoiceRule(Validator):
    """A field, when present, must be one of a fixed set of values."""

    def __init__(self, field: str, choices: Iterable[Any], message: Optional[str] = None):
        self.field = field
        self.choices = [getattr(choice, "value", choice) for choice in choices]
        self.message = message

    def validate(self, record: Mapping[str, Any]) -> None:
        value = record.get(self.field)
        if is_missing(value):
            return
        if value not in self.choices:
            raise ValidationError(
                self.message or f"Invalid {self.field}: {value}",
                field=self.field,
                value=value,
                context={"allowed": list(self.choices)}
            )


class DateOrderRule(Validator):
    """When both date fields are set, the end must be strictly after the start."""

    def __init__(self, start_field: str, end_field: str, message: Optional[str] = None):
        self.start_field = start_field
        self.end_field = end_field
        self.message = message or f"{end_field} must be after {start_field}"

    def validate(self, record: Mapping[str, Any]) -> None:
        start_value = record.get(self.start_field)
        end_value = record.get(self.end_field)
        if is_missing(start_value) or is_missing(end_value):
            return
        start = parse_timestamp(start_value)
        if start is None:
            raise ValidationError(f"Invalid date for {self.start_field}", field=self.start_field, value=start_value)
        end = parse_timestamp(end_value)
        if end is None:
            raise ValidationError(f"Invalid date for {self.end_field}", field=self.end_field, value=end_value)
        if end <= start:
            raise ValidationError(self.message, field=self.end_field, value=end_value)


class RangeRule(Validator):
    """A numeric field, when present, must lie within [minimum, maximum]."""

    def __init__(self, field: str, minimum: float, maximum: float, message: Optional[str] = None):
        self.field = field
        self.minimum = minimum
        self.maximum = maximum
        self.message = message or f"{field} must be between {minimum} and {maximum}"

    def validate(self, record: Mapping[str, Any]) -> None:
        value = record.get(self.field)
        if value is None:
            return
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(self.message, field=self.field, value=value)
        if not self.minimum <= value <= self.maximum:
            raise ValidationError(self.message, field=self.field, value=value)


class AllOf(Validator):
    """Applies validators in order; the first failure wins."""

    def __init__(self, *validators: Validator):
        self.validators = list(validators)

    def validate(self, record: Mapping[str, Any]) -> None:
        for validator in self.validators:
            validator.validate(record)


class FunctionValidator(Validator):
    """Adapts a plain callable that raises ValidationError."""

    def __init__(self, func: Callable[[Mapping[str, Any]], None]):
        self.func = func

    def validate(self, record: Mapping[str, Any]) -> None:
        self.func(record)
