"""
Tests for validation rules.
"""
import pytest

from clientdesk.constants import Priority
from clientdesk.exceptions import ValidationError
from clientdesk.storage import (
    AllOf,
    ChoiceRule,
    DateOrderRule,
    FunctionValidator,
    PatternRule,
    RangeRule,
    RequiredFields,
)
from clientdesk.storage.validation import is_missing


@pytest.mark.parametrize("value,expected", [
    (None, True),
    ("", True),
    ("   ", True),
    ([], True),
    ({}, True),
    (0, False),
    (False, False),
    ("x", False),
    ([0], False),
])
def test_is_missing(value, expected):
    assert is_missing(value) is expected


class TestRequiredFields:
    """Tests for RequiredFields."""

    def test_all_present(self):
        RequiredFields(["a", "b"]).validate({"a": 0, "b": False})

    def test_names_every_missing_field(self):
        with pytest.raises(ValidationError) as exc_info:
            RequiredFields(["a", "b", "c"]).validate({"b": "set", "c": "  "})

        error = exc_info.value
        assert error.message == "Missing required fields: a, c"
        assert error.field == "a"
        assert error.context["missing_fields"] == ["a", "c"]


class TestPatternRule:
    """Tests for PatternRule."""

    def test_absent_value_passes(self):
        PatternRule("email", r"\S+@\S+").validate({})

    def test_must_match_whole_value(self):
        rule = PatternRule("code", r"\d+", "Digits only")
        rule.validate({"code": "123"})
        with pytest.raises(ValidationError) as exc_info:
            rule.validate({"code": "123abc"})
        assert exc_info.value.message == "Digits only"
        assert exc_info.value.field == "code"

    def test_non_string_rejected(self):
        with pytest.raises(ValidationError):
            PatternRule("code", r"\d+").validate({"code": 123})


class TestChoiceRule:
    """Tests for ChoiceRule."""

    def test_enum_values(self):
        rule = ChoiceRule("priority", Priority)
        rule.validate({"priority": "urgent"})
        rule.validate({})
        with pytest.raises(ValidationError) as exc_info:
            rule.validate({"priority": "critical"})
        assert "low" in exc_info.value.context["allowed"]


class TestDateOrderRule:
    """Tests for DateOrderRule."""

    def test_end_after_start(self):
        DateOrderRule("startDate", "endDate").validate({
            "startDate": "2026-01-01",
            "endDate": "2026-01-02T00:00:00.000Z",
        })

    def test_equal_dates_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            DateOrderRule("startDate", "endDate").validate({
                "startDate": "2026-01-01",
                "endDate": "2026-01-01",
            })
        assert exc_info.value.field == "endDate"

    def test_one_side_missing_passes(self):
        DateOrderRule("startDate", "endDate").validate({"startDate": "2026-01-01"})

    def test_unparseable_date_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            DateOrderRule("startDate", "endDate").validate({
                "startDate": "soon",
                "endDate": "2026-01-01",
            })
        assert exc_info.value.field == "startDate"


class TestRangeRule:
    """Tests for RangeRule."""

    @pytest.mark.parametrize("value", [0, 50, 100, 99.5])
    def test_in_range(self, value):
        RangeRule("progress", 0, 100).validate({"progress": value})

    @pytest.mark.parametrize("value", [-1, 101, "50", True])
    def test_out_of_range_or_wrong_type(self, value):
        with pytest.raises(ValidationError):
            RangeRule("progress", 0, 100).validate({"progress": value})


def test_all_of_stops_at_first_failure():
    calls = []

    def record_call(record):
        calls.append(record)

    validator = AllOf(RequiredFields(["a"]), FunctionValidator(record_call))

    with pytest.raises(ValidationError):
        validator.validate({})
    assert calls == []

    validator.validate({"a": 1})
    assert calls == [{"a": 1}]
