"""Per-tool configuration table.

Each calculator is data: its greeting, its step sequences (with field rules
and suspicion thresholds) and a compute function that turns validated
answers into a result payload. The dialogue engine is the same for all of
them.
"""

import dataclasses
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..models import (
    ChoiceOption,
    FieldRule,
    IncompleteSessionState,
    Leg,
    StepDescriptor,
)
from ..settings import get_settings
from . import kernels
from .formatting import format_inr, format_number
from .sequencer import active_steps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    """What a finished calculation hands to the presentation layer."""

    tool_id: str
    headline: str
    figures: Dict[str, Any]
    notes: Tuple[str, ...] = ()
    variant: str = ""
    numeric_result: float = 0.0
    context_summary: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "tool_id": self.tool_id,
            "variant": self.variant,
            "headline": self.headline,
            "figures": self.figures,
            "notes": list(self.notes),
        }


Compute = Callable[[Mapping[str, Any], Tuple[Leg, ...]], ToolResult]


@dataclass(frozen=True)
class ToolConfig:
    tool_id: str
    title: str
    steps: Tuple[StepDescriptor, ...]
    compute: Compute
    greeting: Tuple[str, ...] = ()
    restart_lines: Tuple[str, ...] = ()
    crunching_line: str = "Alright, crunching your numbers now… 🧮"
    closing_line: str = "Want to try a different combo? Start a new calculation anytime."
    integrity_message: str = (
        "Some inputs are missing, so I can't trust this result. "
        "Let's restart and keep it clean 🙂"
    )
    # stock averaging: fields that form a leg, and the choice that loops back
    leg_fields: Optional[Tuple[str, str]] = None
    repeat_field: Optional[str] = None
    repeat_value: str = "yes"
    repeat_line: str = ""
    leg_added_line: str = "Trade {count} added. 👍"
    confirm_line: str = (
        "Thanks for confirming. I'll continue with this value, "
        "but please be sure it's accurate."
    )
    edit_line: str = "Sure, let's adjust that number."


# === Gold jewellery ===


def _making_exceeds_double_gold(value: float, answers: Mapping[str, Any]) -> bool:
    try:
        carat = float(answers["carat"])
        weight = float(answers["weight"])
        rate = float(answers["rate"])
    except (KeyError, TypeError, ValueError):
        return False
    metal = kernels.gold_value(carat, weight, rate)
    return metal > 0 and value > metal * 2


def _compute_gold(answers: Mapping[str, Any], legs: Tuple[Leg, ...]) -> ToolResult:
    carat = float(answers["carat"])
    quote = kernels.gold_price(
        carat, float(answers["weight"]), float(answers["rate"]), float(answers["making"])
    )
    weight = format_number(quote.weight_grams)
    karat = format_number(carat)
    return ToolResult(
        tool_id="gold",
        headline=f"Final jewellery price (including 3% GST): {format_inr(quote.total)}",
        figures=quote.as_dict(),
        notes=(
            f"For this {karat}K jewellery of {weight} g, your final payable amount "
            f"is {format_inr(quote.total)}.",
            "GST at 3% is already included, you can show this directly to your customer.",
        ),
        numeric_result=quote.total,
        context_summary=(
            f"{karat}K gold jewellery, {weight} g at {format_inr(quote.rate_24k)}/g (24K), "
            f"making {format_inr(quote.making_charge)}"
        ),
    )


GOLD = ToolConfig(
    tool_id="gold",
    title="Gold Jewellery Price",
    greeting=(
        "Hi, I'm your Gold AI assistant. I'll ask you a few quick questions and then "
        "show a transparent price breakdown for your jewellery.",
        "GST at 3% will be automatically included in the final amount.",
    ),
    restart_lines=("Sure! Let's set up a fresh jewellery calculation.",),
    crunching_line="Perfect. Let me crunch the numbers for you…",
    closing_line="If you want, we can calculate another design. Just start a new calculation.",
    integrity_message=(
        "Something went wrong while collecting inputs. Please start a new calculation."
    ),
    steps=(
        StepDescriptor(
            id="carat",
            kind="choice",
            prompt="First, what gold purity are you buying today?",
            options=(
                ChoiceOption("18", "18K", "75% pure gold"),
                ChoiceOption("22", "22K", "91.6% pure gold"),
                ChoiceOption("24", "24K", "99.9% pure gold"),
            ),
        ),
        StepDescriptor(
            id="weight",
            kind="number",
            prompt="Nice choice. Now tell me the weight of the jewellery (in grams).",
            placeholder="e.g., 20",
            unit="g",
            rule=FieldRule(
                minimum=0.01,
                maximum=10_000,
                suspicious_above=500,
                hint="Please enter a valid positive number (for example: 5 or 12.5).",
                example=(
                    "I'll wait here until you give me a valid number ✨ Use the total net "
                    "weight without stones, for example 20."
                ),
                suspicious_message=(
                    "This weight seems very high for typical jewellery. "
                    "Do you still want to continue with it?"
                ),
            ),
        ),
        StepDescriptor(
            id="rate",
            kind="number",
            prompt="Got it. What is the 24K gold rate today (per gram in ₹)?",
            placeholder="e.g., 7000",
            unit="₹",
            rule=FieldRule(
                minimum=1,
                maximum=1_000_000,
                suspicious_below=1_000,
                suspicious_above=100_000,
                hint="Please enter a valid positive number (for example: 7000).",
                example=(
                    "I'll wait here until you give me a valid number ✨ Use the pure 24K "
                    "rate per gram in your city, for example 7000."
                ),
                suspicious_message=(
                    "That gold rate looks unusual for a per-gram 24K price. "
                    "Are you sure it's correct?"
                ),
            ),
        ),
        StepDescriptor(
            id="making",
            kind="number",
            prompt="Last step: what are the making charges for this jewellery (in ₹)?",
            placeholder="e.g., 3000",
            unit="₹",
            rule=FieldRule(
                minimum=0,
                maximum=100_000_000,
                suspicious_check=_making_exceeds_double_gold,
                hint="Please enter the total making charges, or 0 (for example: 3000).",
                example=(
                    "I'll wait here until you give me a valid number ✨ Enter the total "
                    "making charges for the item, not per gram, for example 3000."
                ),
                suspicious_message=(
                    "These making charges are more than twice the gold value. "
                    "Are you sure it's correct?"
                ),
            ),
        ),
    ),
    compute=_compute_gold,
)


# === Credit card EMI ===

_CARD_AMOUNT = dict(
    minimum=0,
    min_exclusive=True,
    maximum=10_000_000,
    suspicious_above=5_000_000,
)
_CARD_RATE = dict(minimum=0, min_exclusive=True, maximum=100, suspicious_above=60)
_CARD_MONTHS = dict(minimum=1, maximum=360, integer=True)
_CARD_FEE = FieldRule(
    minimum=0,
    maximum=100_000,
    blank_default=0.0,
    hint="Processing fee should be a positive number or 0.",
    example="Processing fee should be a number like 199, or 0 if there is none.",
)


def _compute_credit(answers: Mapping[str, Any], legs: Tuple[Leg, ...]) -> ToolResult:
    variant = answers["variant"]
    if variant == "standard":
        return _standard_emi_result(answers)
    if variant == "no_cost":
        return _no_cost_result(answers)
    if variant == "min_due":
        return _min_due_result(answers)
    raise ValueError(f"unknown EMI variant: {variant!r}")


def _standard_emi_result(answers: Mapping[str, Any]) -> ToolResult:
    b = kernels.standard_emi(
        float(answers["amount"]),
        float(answers["rate"]),
        int(answers["months"]),
        float(answers.get("fee") or 0.0),
    )
    figures = b.as_dict()
    figures["split"] = {
        "principal": b.principal,
        "interest": b.interest,
        "fee": b.fee,
        "gst": b.gst_on_interest + b.gst_on_fee,
    }
    if b.extra_cost > b.principal * 0.25:
        verdict = (
            "That EMI is costing a bit too much 😬 Consider a shorter tenure "
            "or part-prepayment to reduce interest."
        )
    else:
        verdict = "Smart pick! This EMI structure is reasonably cost-efficient 💪"
    return ToolResult(
        tool_id="credit_emi",
        variant="standard",
        headline=f"{format_inr(b.emi)} / month for {b.months} months",
        figures=figures,
        notes=(
            f"Total you pay back: {format_inr(b.total_payable)} "
            f"(interest {format_inr(b.interest)}, GST {format_inr(b.gst_on_interest + b.gst_on_fee)}).",
            f"Extra cost over original amount: {format_inr(b.extra_cost)}.",
            verdict,
        ),
        numeric_result=b.total_payable,
        context_summary=(
            f"Standard card EMI on {format_inr(b.principal)} at "
            f"{format_number(b.annual_rate_pct)}% for {b.months} months"
        ),
    )


def _no_cost_result(answers: Mapping[str, Any]) -> ToolResult:
    c = kernels.no_cost_emi_check(
        float(answers["price"]),
        float(answers["emi"]),
        int(answers["months"]),
        float(answers.get("fee") or 0.0),
    )
    notes: List[str] = [f"Extra over the product price: {format_inr(c.extra)}."]
    if c.approx_effective_rate_pct is not None:
        notes.append(
            f"Approximate effective interest: ~{c.approx_effective_rate_pct:.2f}% per year "
            "(a flat estimate, not an exact IRR)."
        )
        notes.append(
            "This EMI isn't truly free: you're paying extra over the product price. "
            "Now you know the real cost 😅"
        )
    else:
        notes.append(
            "This looks truly close to a no-cost EMI. Still, always compare upfront "
            "discount vs EMI offers."
        )
    notes.append(
        "Pro tip: if the extra cost feels high, consider paying upfront or choosing a "
        "shorter EMI."
    )
    return ToolResult(
        tool_id="credit_emi",
        variant="no_cost",
        headline=f"{format_inr(c.total_paid)} total paid",
        figures=c.as_dict(),
        notes=tuple(notes),
        numeric_result=c.extra,
        context_summary=(
            f"'No-cost' EMI of {format_inr(c.emi)} x {c.months} months on a "
            f"{format_inr(c.product_price)} product"
        ),
    )


def _min_due_result(answers: Mapping[str, Any]) -> ToolResult:
    p = kernels.minimum_due_simulation(
        float(answers["balance"]),
        float(answers["apr"]),
        float(answers["min_due_pct"]),
        int(answers["months"]),
    )
    if p.remaining_balance > p.starting_balance * 0.7:
        verdict = (
            "Even after all these months, most of your principal is still alive. "
            "That's how minimum due traps people in debt 😬"
        )
    else:
        verdict = (
            "You're paying a lot in interest just by sticking to minimum due. "
            "Clearing faster saves serious money."
        )
    figures = p.as_dict()
    figures["balances"] = list(p.balances)
    return ToolResult(
        tool_id="credit_emi",
        variant="min_due",
        headline=f"Remaining balance: {format_inr(p.remaining_balance)}",
        figures=figures,
        notes=(
            f"Over {p.months_simulated} months you pay {format_inr(p.total_paid)}, "
            f"of which {format_inr(p.total_interest)} is interest.",
            verdict,
            "Best move: treat credit cards like a charge card and pay in full "
            "whenever possible. Your future self will thank you 😌",
        ),
        numeric_result=p.remaining_balance,
        context_summary=(
            f"Paying only {format_number(p.min_due_pct)}% minimum due on a "
            f"{format_inr(p.starting_balance)} card bill at {format_number(p.apr_pct)}% APR"
        ),
    )


CREDIT_EMI = ToolConfig(
    tool_id="credit_emi",
    title="Credit Card EMI",
    greeting=(
        "Hey! I'm your Credit Card EMI AI 😎",
        "I'll help you decode EMI, 'no-cost' offers and minimum-due traps 📉",
        "We'll keep it super simple. You just answer, I do the math 💜",
    ),
    restart_lines=("New session, fresh analysis 💳✨",),
    crunching_line="Alright, let me unpack this for you… 🧮",
    steps=(
        StepDescriptor(
            id="variant",
            kind="choice",
            prompt="Tell me what you want to check this time.",
            options=(
                ChoiceOption(
                    "standard",
                    "Standard EMI",
                    "EMI, interest and total cost",
                    branch=(
                        StepDescriptor(
                            id="amount",
                            kind="number",
                            prompt="First: what's the transaction amount on your card? (₹)",
                            placeholder="Ex: 15000, 25000, 50000",
                            unit="₹",
                            rule=FieldRule(
                                **_CARD_AMOUNT,
                                hint="That doesn't look valid. Try something like 15000.",
                                example="Use a realistic amount like 15000 or 50000.",
                                suspicious_message=(
                                    "Big swipe there 😅 That's a very large amount for a "
                                    "card. Is it correct?"
                                ),
                            ),
                        ),
                        StepDescriptor(
                            id="rate",
                            kind="number",
                            prompt="Cool. Next, what interest rate has the bank offered? (% per year)",
                            placeholder="Ex: 13, 15.75, 18",
                            unit="%",
                            rule=FieldRule(
                                **_CARD_RATE,
                                hint="That doesn't look right. Try 15.75 or 18.",
                                example=(
                                    "Use a valid % like 13, 18 or 24. Most Indian credit "
                                    "cards sit between 18-42% p.a."
                                ),
                                suspicious_message=(
                                    "This looks very aggressive. Is this really your card rate? 😬"
                                ),
                            ),
                        ),
                        StepDescriptor(
                            id="months",
                            kind="number",
                            prompt="Got it. For how many months is the EMI?",
                            placeholder="Ex: 3, 6, 9, 12",
                            unit="months",
                            rule=FieldRule(
                                **_CARD_MONTHS,
                                suspicious_above=120,
                                hint="That doesn't look valid. Try 3-24 months.",
                                example="Try a valid EMI period like 3, 6, 9 or 12 months.",
                                suspicious_message=(
                                    "That's a very long tenure for a credit card EMI. "
                                    "Is it correct?"
                                ),
                            ),
                        ),
                        StepDescriptor(
                            id="fee",
                            kind="number",
                            prompt="Last bit: any processing fee for this EMI? (₹) Put 0 if none.",
                            placeholder="Ex: 199 or 0",
                            unit="₹",
                            rule=_CARD_FEE,
                        ),
                    ),
                ),
                ChoiceOption(
                    "no_cost",
                    '"No-Cost" EMI',
                    "Is it really free?",
                    branch=(
                        StepDescriptor(
                            id="price",
                            kind="number",
                            prompt="What's the product price used for EMI? (₹)",
                            placeholder="Ex: 29999, 49999",
                            unit="₹",
                            rule=FieldRule(
                                **_CARD_AMOUNT,
                                hint="Use a valid price like 29999 or 49999.",
                                example="Enter the product price in rupees, for example 29999.",
                                suspicious_message=(
                                    "That's a big purchase. Is the amount correct? 😅"
                                ),
                            ),
                        ),
                        StepDescriptor(
                            id="emi",
                            kind="number",
                            prompt="Nice. What is the EMI amount per month? (₹)",
                            placeholder="Ex: 2500, 4200",
                            unit="₹",
                            rule=FieldRule(
                                minimum=0,
                                min_exclusive=True,
                                maximum=1_000_000,
                                hint="Use a valid EMI like 2500 or 4200.",
                                example="Enter the monthly EMI in rupees, for example 4200.",
                            ),
                        ),
                        StepDescriptor(
                            id="months",
                            kind="number",
                            prompt="Cool. For how many months is this EMI?",
                            placeholder="Ex: 3, 6, 9, 12",
                            unit="months",
                            rule=FieldRule(
                                **_CARD_MONTHS,
                                suspicious_above=120,
                                hint="Tenure should be a positive number of months.",
                                example="Try a tenure like 3, 6, 9 or 12 months.",
                                suspicious_message=(
                                    "No-cost EMIs are usually short. Is this tenure correct? 🙂"
                                ),
                            ),
                        ),
                        StepDescriptor(
                            id="fee",
                            kind="number",
                            prompt="Any processing fee for this EMI? (₹) Put 0 if none.",
                            placeholder="Ex: 199 or 0",
                            unit="₹",
                            rule=_CARD_FEE,
                        ),
                    ),
                ),
                ChoiceOption(
                    "min_due",
                    "Minimum Due Trap",
                    "What if you only pay the minimum?",
                    branch=(
                        StepDescriptor(
                            id="balance",
                            kind="number",
                            prompt="What's your current credit card bill amount? (₹)",
                            placeholder="Ex: 12000, 45000",
                            unit="₹",
                            rule=FieldRule(
                                **_CARD_AMOUNT,
                                hint="Use a valid statement amount like 12000 or 45000.",
                                example="Enter the total bill on your statement, for example 45000.",
                                suspicious_message=(
                                    "That's a serious balance 💀 Please double-check it. "
                                    "Is it correct?"
                                ),
                            ),
                        ),
                        StepDescriptor(
                            id="apr",
                            kind="number",
                            prompt="What annual interest rate does your card charge? (% p.a.)",
                            placeholder="Ex: 30, 36, 42",
                            unit="%",
                            rule=FieldRule(
                                **_CARD_RATE,
                                hint="Use a realistic APR like 30-42%.",
                                example="Enter the APR from your statement, for example 36.",
                                suspicious_message=(
                                    "This is an extremely high APR. If it's really this high, "
                                    "minimum due is very dangerous 😬 Is it correct?"
                                ),
                            ),
                        ),
                        StepDescriptor(
                            id="min_due_pct",
                            kind="number",
                            prompt="What minimum due % is shown on your statement? (Ex: 5%)",
                            placeholder="Ex: 5",
                            unit="%",
                            rule=FieldRule(
                                minimum=0,
                                min_exclusive=True,
                                maximum=100,
                                suspicious_above=20,
                                hint="Use a valid minimum due %, like 5.",
                                example="Minimum due is usually around 3-5%, for example 5.",
                                suspicious_message=(
                                    "A minimum due that high is unusual. Confirm once 🤔"
                                ),
                            ),
                        ),
                        StepDescriptor(
                            id="months",
                            kind="number",
                            prompt=(
                                "For how many months do you want to simulate paying only "
                                "minimum due?"
                            ),
                            placeholder="Ex: 6 or 12",
                            unit="months",
                            rule=FieldRule(
                                **_CARD_MONTHS,
                                hint="Use a realistic duration like 6 or 12 months.",
                                example="Enter a duration between 1 and 360 months, for example 12.",
                            ),
                        ),
                    ),
                ),
            ),
        ),
    ),
    compute=_compute_credit,
)


# === Investment growth ===


def _compute_investment(answers: Mapping[str, Any], legs: Tuple[Leg, ...]) -> ToolResult:
    inflation = answers.get("inflation")
    p = kernels.investment_growth(
        str(answers["mode"]),
        float(answers["amount"]),
        float(answers["years"]),
        float(answers["rate"]),
        float(inflation) if inflation is not None else None,
    )
    label = "Monthly SIP" if p.mode == "sip" else "Lump Sum"
    notes = [
        f"Invested: {format_inr(p.invested)}, wealth gained: {format_inr(p.wealth_gain)}.",
    ]
    if p.real_future_value is not None:
        notes.append(
            f"In today's money (at {format_number(p.inflation_pct or 0)}% inflation) "
            f"that is about {format_inr(p.real_future_value)}."
        )
    notes.append("You're letting compounding do the heavy lifting 🧠💸")
    return ToolResult(
        tool_id="investment",
        variant=p.mode,
        headline=f"{label}: {format_inr(p.future_value)} after {format_number(p.years)} years",
        figures=p.as_dict(),
        notes=tuple(notes),
        numeric_result=p.future_value,
        context_summary=(
            f"{label} of {format_inr(p.amount)} for {format_number(p.years)} years "
            f"at {format_number(p.annual_rate_pct)}% expected return"
        ),
    )


def _investment_branch(amount_prompt: str, placeholder: str) -> Tuple[StepDescriptor, ...]:
    return (
        StepDescriptor(
            id="amount",
            kind="number",
            prompt=amount_prompt,
            placeholder=placeholder,
            unit="₹",
            rule=FieldRule(
                minimum=0,
                min_exclusive=True,
                maximum=1_000_000_000,
                suspicious_above=50_000_000,
                hint="That doesn't look right. Try 2000, 5000, 10000…",
                example=(
                    "I just need a valid amount in rupees to continue 😊 "
                    "Ex: 2000, 5000, 25000."
                ),
                suspicious_message=(
                    "Whoa, that's a huge number. Please double-check the zeros. "
                    "Is it correct?"
                ),
            ),
        ),
        StepDescriptor(
            id="years",
            kind="number",
            prompt="Next: for how many years will you stay invested?",
            placeholder="Ex: 5, 10, 15",
            unit="years",
            rule=FieldRule(
                minimum=0,
                min_exclusive=True,
                maximum=100,
                suspicious_above=60,
                hint="Try something like 5, 10 or 15 years.",
                example="Give me a realistic duration like 5, 10 or 20 years 😌",
                suspicious_message="Super long horizon there 😅 Is that intentional?",
            ),
        ),
        StepDescriptor(
            id="rate",
            kind="number",
            prompt="Now tell me your expected annual return % (like 10, 12 or 15).",
            placeholder="Ex: 10, 12, 15",
            unit="%",
            rule=FieldRule(
                minimum=0,
                min_exclusive=True,
                maximum=100,
                suspicious_above=30,
                hint="That doesn't look right. Try 8, 10, 12 or 15.",
                example="I just need a realistic return % like 10 or 12 📈",
                suspicious_message=(
                    "That return is quite high vs normal markets. Are you sure? 😅"
                ),
            ),
        ),
        StepDescriptor(
            id="adjust_inflation",
            kind="choice",
            prompt=(
                "Do you want me to also adjust this for inflation? "
                "(shows value in today's money)"
            ),
            options=(
                ChoiceOption(
                    "yes",
                    "Yes, include it",
                    branch=(
                        StepDescriptor(
                            id="inflation",
                            kind="number",
                            prompt="What inflation % do you want to assume? (many use 4-6%)",
                            placeholder="Ex: 4, 5, 6",
                            unit="%",
                            rule=FieldRule(
                                minimum=0,
                                maximum=40,
                                suspicious_above=25,
                                hint="That doesn't look valid. Try 4, 5 or 6.",
                                example="Most long-term plans use around 4-6% inflation 😌",
                                suspicious_message=(
                                    "That's very high inflation. Only use this if you're "
                                    "stress-testing 🧪 Continue with it?"
                                ),
                            ),
                        ),
                    ),
                ),
                ChoiceOption("no", "No, skip"),
            ),
        ),
    )


INVESTMENT = ToolConfig(
    tool_id="investment",
    title="Investment Growth",
    greeting=(
        "Hey! I'm your Investment Growth AI 😎",
        "I'll help you see how your money can grow over time 📈",
        "We'll keep it super simple, I do the math, you just tap & type 💜",
    ),
    restart_lines=("New session, new plan ✨",),
    closing_line="Want to try a different combo? We can tweak amount, years or returns anytime 😄",
    integrity_message=(
        "Hmm, some inputs look incomplete. To avoid wrong numbers, let's restart fresh 🙂"
    ),
    steps=(
        StepDescriptor(
            id="mode",
            kind="choice",
            prompt="First, choose SIP or Lump Sum.",
            options=(
                ChoiceOption(
                    "sip",
                    "SIP (Monthly)",
                    "You invest small, the market grows it over time",
                    branch=_investment_branch(
                        "How much will you invest every month?", "Monthly SIP amount (₹)"
                    ),
                ),
                ChoiceOption(
                    "lump_sum",
                    "Lump Sum",
                    "One solid move up front",
                    branch=_investment_branch(
                        "How much do you plan to invest once?", "Lump sum amount (₹)"
                    ),
                ),
            ),
        ),
    ),
    compute=_compute_investment,
)


# === Stock cost averaging ===


def _compute_stock_average(answers: Mapping[str, Any], legs: Tuple[Leg, ...]) -> ToolResult:
    try:
        avg = kernels.weighted_average_cost(legs)
    except ValueError as e:
        raise IncompleteSessionState("stock_average", ("legs",)) from e
    price = format_inr(avg.average_price)
    return ToolResult(
        tool_id="stock_average",
        headline=f"Average buy price: {price}",
        figures=avg.as_dict(),
        notes=(
            f"{format_number(avg.total_quantity)} shares across {avg.legs} trade(s), "
            f"total invested {format_inr(avg.total_value)}.",
            f"Trade prices ranged from {format_inr(avg.min_price)} to {format_inr(avg.max_price)}.",
            f"Any new buy below {price} will reduce your average cost. "
            "Buying above this level will push your cost higher.",
        ),
        numeric_result=avg.average_price,
        context_summary=f"Weighted average of {avg.legs} trade(s) in one stock",
    )


STOCK_AVERAGE = ToolConfig(
    tool_id="stock_average",
    title="Stock Average",
    greeting=(
        "Hi, I'm your Invest IQ Engine. 😊",
        "I'll help you find your true average buy price for any stock.",
        "We'll go trade by trade: you give quantity and buy price, I do the maths.",
    ),
    restart_lines=("New stock, fresh averaging session. 😊",),
    crunching_line="All set. I've crunched your position details. 📈",
    closing_line=(
        "Nicely managed! Use this level as your reference when planning the next "
        "entry or exit. 😊"
    ),
    integrity_message=(
        "I don't have any valid trades yet. Let's start from your first purchase."
    ),
    leg_fields=("quantity", "price"),
    repeat_field="add_more",
    repeat_value="yes",
    repeat_line="Great, let's capture that too.",
    steps=(
        StepDescriptor(
            id="quantity",
            kind="number",
            prompt="How many shares did you buy in this trade?",
            placeholder="Ex: 25, 100, 350",
            unit="shares",
            rule=FieldRule(
                minimum=1,
                maximum=1_000_000_000,
                integer=True,
                suspicious_above=500_000,
                hint="Quantity must be a positive whole number like 10, 50 or 200.",
                example="For quantity, think in whole shares only: 10, 25, 200 etc.",
                suspicious_message=(
                    "That's a big number of shares. Just confirm it once before we go "
                    "ahead. ⚠️"
                ),
            ),
        ),
        StepDescriptor(
            id="price",
            kind="number",
            prompt="Now tell me the buy price per share for this trade.",
            placeholder="Ex: 120, 245.5",
            unit="₹",
            rule=FieldRule(
                minimum=0,
                min_exclusive=True,
                maximum=10_000_000,
                suspicious_below=0.5,
                suspicious_above=500_000,
                hint="Price must be a positive number like 120 or 245.5. It can't be zero.",
                example=(
                    "Use the per-share price you see on your contract note or app, just "
                    "one number per trade. 🙂"
                ),
                suspicious_message=(
                    "That level looks a bit extreme compared to usual equity prices. "
                    "Is it correct? ⚠️"
                ),
            ),
        ),
        StepDescriptor(
            id="add_more",
            kind="choice",
            prompt="Do you want to add another trade for this same stock?",
            options=(
                ChoiceOption("yes", "Yes, add another trade"),
                ChoiceOption("no", "No, show my average"),
            ),
        ),
    ),
    compute=_compute_stock_average,
)


TOOLS: Tuple[ToolConfig, ...] = (GOLD, CREDIT_EMI, INVESTMENT, STOCK_AVERAGE)

_RULE_ATTRS = frozenset(f.name for f in dataclasses.fields(FieldRule))


def _override_steps(
    steps: Sequence[StepDescriptor], overrides: Mapping[str, Mapping[str, Any]]
) -> Tuple[StepDescriptor, ...]:
    rebuilt: List[StepDescriptor] = []
    for step in steps:
        changes: Dict[str, Any] = {}
        if step.rule is not None and step.id in overrides:
            changes["rule"] = dataclasses.replace(step.rule, **overrides[step.id])
        if step.options:
            changes["options"] = tuple(
                dataclasses.replace(opt, branch=_override_steps(opt.branch, overrides))
                if opt.branch
                else opt
                for opt in step.options
            )
        rebuilt.append(dataclasses.replace(step, **changes) if changes else step)
    return tuple(rebuilt)


def apply_overrides(
    tool: ToolConfig, overrides: Mapping[str, Mapping[str, Any]]
) -> ToolConfig:
    """Return tool with rule attributes replaced from "<tool>.<field>" keys."""
    prefix = f"{tool.tool_id}."
    per_field: Dict[str, Dict[str, Any]] = {}
    for key, values in overrides.items():
        if not key.startswith(prefix):
            continue
        if not isinstance(values, Mapping):
            logger.warning("Ignoring threshold override %s: expected a mapping, got %r", key, values)
            continue
        accepted = {}
        for attr, value in values.items():
            if attr in _RULE_ATTRS:
                accepted[attr] = value
            else:
                logger.warning("Ignoring threshold override %s.%s: not a field rule attribute", key, attr)
        if accepted:
            per_field[key[len(prefix):]] = accepted
    if not per_field:
        return tool
    logger.info("Applying threshold overrides to %s: %s", tool.tool_id, sorted(per_field))
    return dataclasses.replace(tool, steps=_override_steps(tool.steps, per_field))


def build_tools(
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, ToolConfig]:
    return {t.tool_id: apply_overrides(t, overrides or {}) for t in TOOLS}


@lru_cache(maxsize=1)
def _configured_tools() -> Dict[str, ToolConfig]:
    return build_tools(get_settings().threshold_overrides)


def get_tool(tool_id: str) -> ToolConfig:
    """Return the configured tool, raising KeyError for unknown ids."""
    return _configured_tools()[tool_id]


def field_rules(tool: ToolConfig, choices: Optional[Mapping[str, Any]] = None) -> Dict[str, FieldRule]:
    """Rules of the steps on the path selected by choices.

    Branches may reuse a field id with different thresholds, so the rule
    for a field depends on which branch was taken.
    """
    steps = active_steps(tool.steps, choices or {})
    return {s.id: s.rule for s in steps if s.rule is not None}


def list_tools() -> List[Dict[str, str]]:
    return [{"tool_id": t.tool_id, "title": t.title} for t in _configured_tools().values()]
