import json

from guidedcalc.engine.scoring import score_bucket
from guidedcalc.services.commentary import FALLBACK_LINES
from mcp_servers.calculators.server import (
    card_emi,
    minimum_due,
    name_compatibility,
    no_cost_emi,
    stock_average,
)


def test_card_emi_matches_dialogue_result() -> None:
    result = json.loads(card_emi(100000, 12, 12))
    assert round(result["emi"], 2) == 8884.88
    assert "warnings" not in result


def test_long_card_tenure_is_flagged() -> None:
    assert "warnings" in json.loads(card_emi(100000, 12, 150))
    assert "warnings" in json.loads(no_cost_emi(30000, 250, 150))
    # minimum-due projections may run long without a warning
    assert "warnings" not in json.loads(minimum_due(50000, 42, 5, 150))


def test_invalid_input_is_an_error() -> None:
    assert "error" in json.loads(card_emi(100000, 12, 0))
    assert "error" in json.loads(stock_average([10], [100, 120]))


def test_name_compatibility_comment_follows_bucket() -> None:
    result = json.loads(name_compatibility("Asha", "Ravi"))
    assert 5 <= result["score"] <= 98
    assert result["bucket"] == score_bucket(result["score"])
    assert result["comment"] in FALLBACK_LINES[result["bucket"]]
