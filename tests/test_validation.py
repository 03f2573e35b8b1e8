import pytest

from guidedcalc.engine.validation import (
    ESCALATION_THRESHOLD,
    VerdictStatus,
    guidance_message,
    parse_number,
    validate_number,
)
from guidedcalc.models import FieldRule

RATE = FieldRule(
    minimum=0,
    min_exclusive=True,
    maximum=100,
    suspicious_above=60,
    hint="short hint",
    example="try 18",
)


@pytest.mark.parametrize(
    "raw,expected",
    [("12.5", 12.5), (" 7000 ", 7000.0), ("1,50,000", 150000.0), (42, 42.0), (3.5, 3.5)],
)
def test_parse_number_accepts(raw: object, expected: float) -> None:
    assert parse_number(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "12abc", None, True, float("nan"), "inf", "-inf"])
def test_parse_number_rejects(raw: object) -> None:
    assert parse_number(raw) is None


def test_parse_number_blank_default() -> None:
    """A blank answer becomes the field's default when it has one."""
    assert parse_number("", blank_default=0.0) == 0.0
    assert parse_number("   ") is None


@pytest.mark.parametrize("raw", ["0", "-5", "100.01", "abc", ""])
def test_rate_invalid(raw: str) -> None:
    assert validate_number(RATE, raw).status is VerdictStatus.INVALID


def test_rate_upper_bound_inclusive() -> None:
    verdict = validate_number(RATE, "100")
    assert verdict.status is VerdictStatus.SUSPICIOUS
    assert verdict.value == 100


def test_rate_accepted() -> None:
    verdict = validate_number(RATE, "18")
    assert verdict.accepted
    assert verdict.value == 18.0


def test_integer_rule_rejects_fractions() -> None:
    months = FieldRule(minimum=1, maximum=360, integer=True)
    assert validate_number(months, "6.5").status is VerdictStatus.INVALID
    assert validate_number(months, "6").accepted


def test_invalid_beats_suspicious() -> None:
    """Out-of-domain values are rejected even when they would also look suspicious."""
    rule = FieldRule(minimum=0, maximum=1000, suspicious_above=500)
    verdict = validate_number(rule, "5000")
    assert verdict.status is VerdictStatus.INVALID
    assert verdict.reason == "out_of_range"


def test_suspicious_below() -> None:
    rule = FieldRule(minimum=1, maximum=1_000_000, suspicious_below=1000)
    assert validate_number(rule, "500").status is VerdictStatus.SUSPICIOUS


def test_context_dependent_suspicion() -> None:
    """A check that looks at earlier answers sees them."""
    rule = FieldRule(suspicious_check=lambda value, answers: value > answers["limit"])
    assert validate_number(rule, "11", {"limit": 10}).status is VerdictStatus.SUSPICIOUS
    assert validate_number(rule, "9", {"limit": 10}).accepted


def test_guidance_escalates_at_third_attempt() -> None:
    assert guidance_message(RATE, 1) == "short hint"
    assert guidance_message(RATE, ESCALATION_THRESHOLD - 1) == "short hint"
    assert guidance_message(RATE, ESCALATION_THRESHOLD) == "try 18"
    assert guidance_message(RATE, 7) == "try 18"
