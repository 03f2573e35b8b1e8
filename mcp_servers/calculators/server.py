"""Guided calculators MCP server: the computation kernels as MCP tools.

Inputs go through the same field rules as the chat dialogue; a value the
dialogue would reject comes back as {"error": ...}. Suspicious values are
computed but flagged in "warnings", since there is nobody to confirm them.
"""

import json
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from guidedcalc.engine import kernels
from guidedcalc.engine.scoring import compatibility_score, score_bucket, validate_name
from guidedcalc.engine.tools import field_rules, get_tool
from guidedcalc.engine.validation import VerdictStatus, validate_number
from guidedcalc.models import Leg
from guidedcalc.services.commentary import CommentaryRequest, fallback_line

mcp = FastMCP("Guided Calculators", json_response=True)


def _check(
    tool_id: str, values: Dict[str, Any], choices: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Validate values against the field rules of the branch picked by choices.

    Returns {"values": {...}, "warnings": [...]} or {"error": str}.
    """
    rules = field_rules(get_tool(tool_id), choices)
    checked: Dict[str, Any] = dict(choices or {})
    warnings: List[str] = []
    for field_id, raw in values.items():
        rule = rules.get(field_id)
        if rule is None:
            # choice answers only serve as context for later checks
            checked[field_id] = raw
            continue
        verdict = validate_number(rule, raw, checked)
        if verdict.status is VerdictStatus.INVALID:
            return {"error": f"{field_id}: {rule.hint}"}
        if verdict.status is VerdictStatus.SUSPICIOUS:
            warnings.append(f"{field_id}: {rule.suspicious_message}")
        checked[field_id] = verdict.value
    return {"values": checked, "warnings": warnings}


def _reply(result: Dict[str, Any], warnings: List[str]) -> str:
    if warnings:
        result["warnings"] = warnings
    return json.dumps(result, indent=2)


@mcp.tool()
def gold_price(carat: int, weight_grams: float, rate_24k: float, making_charge: float = 0.0) -> str:
    """Final jewellery price including 3% GST. carat is 18, 22 or 24; rate is the 24K price per gram."""
    if carat not in (18, 22, 24):
        return json.dumps({"error": "carat must be 18, 22 or 24"})
    checked = _check(
        "gold",
        {"carat": carat, "weight": weight_grams, "rate": rate_24k, "making": making_charge},
    )
    if "error" in checked:
        return json.dumps(checked)
    v = checked["values"]
    quote = kernels.gold_price(float(carat), v["weight"], v["rate"], v["making"])
    return _reply(quote.as_dict(), checked["warnings"])


@mcp.tool()
def card_emi(amount: float, annual_rate_pct: float, months: int, fee: float = 0.0) -> str:
    """Standard credit card EMI with interest, 18% GST on interest and fee, and total payable."""
    checked = _check(
        "credit_emi",
        {"amount": amount, "rate": annual_rate_pct, "months": months, "fee": fee},
        {"variant": "standard"},
    )
    if "error" in checked:
        return json.dumps(checked)
    v = checked["values"]
    b = kernels.standard_emi(v["amount"], v["rate"], int(v["months"]), v["fee"])
    return _reply(b.as_dict(), checked["warnings"])


@mcp.tool()
def no_cost_emi(product_price: float, emi: float, months: int, fee: float = 0.0) -> str:
    """Check a 'no-cost' EMI offer: total paid, extra over the price, approximate yearly rate."""
    checked = _check(
        "credit_emi",
        {"price": product_price, "emi": emi, "months": months, "fee": fee},
        {"variant": "no_cost"},
    )
    if "error" in checked:
        return json.dumps(checked)
    v = checked["values"]
    c = kernels.no_cost_emi_check(v["price"], v["emi"], int(v["months"]), v["fee"])
    result = c.as_dict()
    result["truly_no_cost"] = c.truly_no_cost
    return _reply(result, checked["warnings"])


@mcp.tool()
def minimum_due(balance: float, apr_pct: float, min_due_pct: float, months: int) -> str:
    """Project a card balance when paying only the minimum due each month (max 360 months)."""
    checked = _check(
        "credit_emi",
        {"balance": balance, "apr": apr_pct, "min_due_pct": min_due_pct, "months": months},
        {"variant": "min_due"},
    )
    if "error" in checked:
        return json.dumps(checked)
    v = checked["values"]
    p = kernels.minimum_due_simulation(v["balance"], v["apr"], v["min_due_pct"], int(v["months"]))
    result = p.as_dict()
    result["balances"] = list(p.balances)
    return _reply(result, checked["warnings"])


@mcp.tool()
def investment_growth(
    mode: str, amount: float, years: float, annual_rate_pct: float, inflation_pct: float = 0.0
) -> str:
    """Future value of a monthly SIP (mode "sip") or a one-time investment (mode "lump_sum").

    Pass inflation_pct 0 to skip the inflation adjustment.
    """
    mode = mode.strip().lower()
    if mode not in ("sip", "lump_sum"):
        return json.dumps({"error": "mode must be 'sip' or 'lump_sum'"})
    values: Dict[str, Any] = {"amount": amount, "years": years, "rate": annual_rate_pct}
    if inflation_pct:
        values["inflation"] = inflation_pct
    choices = {"mode": mode, "adjust_inflation": "yes" if inflation_pct else "no"}
    checked = _check("investment", values, choices)
    if "error" in checked:
        return json.dumps(checked)
    v = checked["values"]
    p = kernels.investment_growth(mode, v["amount"], v["years"], v["rate"], v.get("inflation"))
    return _reply(p.as_dict(), checked["warnings"])


@mcp.tool()
def stock_average(quantities: List[int], prices: List[float]) -> str:
    """Weighted average buy price; quantities[i] shares were bought at prices[i]."""
    if not quantities or len(quantities) != len(prices):
        return json.dumps({"error": "quantities and prices must be non-empty and the same length"})
    legs: List[Leg] = []
    warnings: List[str] = []
    for qty, price in zip(quantities, prices):
        checked = _check("stock_average", {"quantity": qty, "price": price})
        if "error" in checked:
            return json.dumps(checked)
        v = checked["values"]
        legs.append(Leg(v["quantity"], v["price"]))
        warnings.extend(checked["warnings"])
    return _reply(kernels.weighted_average_cost(legs).as_dict(), warnings)


@mcp.tool()
def name_compatibility(name_a: str, name_b: str) -> str:
    """Just-for-fun compatibility score between two names, 5 to 98."""
    for name in (name_a, name_b):
        problem: Optional[str] = validate_name(name)
        if problem:
            return json.dumps({"error": problem})
    score = compatibility_score(name_a.strip(), name_b.strip())
    comment = fallback_line(
        CommentaryRequest(
            context_summary=f"{name_a.strip()} and {name_b.strip()}",
            numeric_result=score,
            category="compatibility",
        )
    )
    return json.dumps(
        {"score": score, "bucket": score_bucket(score), "comment": comment}, indent=2
    )


if __name__ == "__main__":
    mcp.run()
