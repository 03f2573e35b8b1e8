import pytest

from guidedcalc.engine.formatting import format_inr, format_number
from guidedcalc.engine.sequencer import iter_all_steps
from guidedcalc.engine.tools import (
    CREDIT_EMI,
    GOLD,
    INVESTMENT,
    TOOLS,
    build_tools,
    field_rules,
    get_tool,
    list_tools,
)
from guidedcalc.engine.validation import VerdictStatus, validate_number


def _rule(tool, field_id: str):
    return next(s.rule for s in iter_all_steps(tool.steps) if s.id == field_id)


def test_registry() -> None:
    assert [t["tool_id"] for t in list_tools()] == ["gold", "credit_emi", "investment", "stock_average"]
    assert get_tool("gold").title == GOLD.title
    with pytest.raises(KeyError):
        get_tool("tarot")


def test_every_tool_starts_with_a_step() -> None:
    for tool in TOOLS:
        assert tool.steps
        assert tool.greeting


def test_threshold_override_reaches_branch_step() -> None:
    tools = build_tools({"credit_emi.rate": {"suspicious_above": 45}})
    assert _rule(tools["credit_emi"], "rate").suspicious_above == 45
    assert _rule(CREDIT_EMI, "rate").suspicious_above == 60
    # gold has a "rate" field too; the key is scoped to one tool
    assert _rule(tools["gold"], "rate") == _rule(GOLD, "rate")


def test_no_overrides_keeps_tools() -> None:
    assert build_tools({})["gold"] is GOLD


def test_unknown_override_attribute_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    tools = build_tools(
        {
            "gold.weight": {"suspicious_abve": 100, "suspicious_above": 800},
            "gold.rate": 5,
        }
    )
    assert _rule(tools["gold"], "weight").suspicious_above == 800
    assert _rule(tools["gold"], "rate") == _rule(GOLD, "rate")
    assert "suspicious_abve" in caplog.text


def test_field_rules_follow_the_chosen_branch() -> None:
    standard = field_rules(CREDIT_EMI, {"variant": "standard"})
    min_due = field_rules(CREDIT_EMI, {"variant": "min_due"})
    assert standard["months"].suspicious_above == 120
    assert validate_number(standard["months"], 150, {}).status is VerdictStatus.SUSPICIOUS
    assert validate_number(min_due["months"], 150, {}).status is VerdictStatus.ACCEPTED
    assert "balance" not in standard
    assert "inflation" in field_rules(INVESTMENT, {"mode": "sip", "adjust_inflation": "yes"})
    assert "inflation" not in field_rules(INVESTMENT, {"mode": "sip", "adjust_inflation": "no"})


@pytest.mark.parametrize(
    "value,text",
    [
        (1_500_000, "₹15,00,000"),
        (69181.6667, "₹69,181.67"),
        (999, "₹999"),
        (100000.5, "₹1,00,000.5"),
        (-1234.5, "-₹1,234.5"),
    ],
)
def test_format_inr(value: float, text: str) -> None:
    assert format_inr(value) == text


def test_format_number() -> None:
    assert format_number(12.0) == "12"
    assert format_number(12.3456789) == "12.3457"
    assert format_number(0.5) == "0.5"
