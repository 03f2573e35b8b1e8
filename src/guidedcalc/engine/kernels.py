"""Computation kernels for the guided calculators.

Every function here is pure: validated numbers in, a frozen result out, no
logging and no I/O. Amounts are left unrounded; rounding is a display
concern.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from ..models import Leg

GOLD_GST_RATE = 0.03
CARD_GST_RATE = 0.18
MAX_SIMULATION_MONTHS = 360


class _AsDict:
    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


# === Gold ===


@dataclass(frozen=True)
class GoldQuote(_AsDict):
    carat: float
    weight_grams: float
    rate_24k: float
    purity_factor: float
    effective_rate: float
    gold_value: float
    making_charge: float
    subtotal: float
    gst: float
    total: float


def gold_value(carat: float, weight_grams: float, rate_24k: float) -> float:
    """Metal value before making charges and tax."""
    return rate_24k * (carat / 24) * weight_grams


def gold_price(
    carat: float, weight_grams: float, rate_24k: float, making_charge: float
) -> GoldQuote:
    purity_factor = carat / 24
    effective_rate = rate_24k * purity_factor
    value = effective_rate * weight_grams
    subtotal = value + making_charge
    gst = subtotal * GOLD_GST_RATE
    return GoldQuote(
        carat=carat,
        weight_grams=weight_grams,
        rate_24k=rate_24k,
        purity_factor=purity_factor,
        effective_rate=effective_rate,
        gold_value=value,
        making_charge=making_charge,
        subtotal=subtotal,
        gst=gst,
        total=subtotal + gst,
    )


# === Credit card EMI ===


@dataclass(frozen=True)
class EmiBreakdown(_AsDict):
    principal: float
    annual_rate_pct: float
    months: int
    emi: float
    total_paid: float
    interest: float
    fee: float
    gst_on_interest: float
    gst_on_fee: float
    total_payable: float
    extra_cost: float


def monthly_rate(annual_rate_pct: float) -> float:
    return annual_rate_pct / 100 / 12


def emi_amount(principal: float, annual_rate_pct: float, months: int) -> float:
    """Equal monthly instalment of a reducing-balance loan."""
    if months <= 0:
        raise ValueError("months must be positive")
    r = monthly_rate(annual_rate_pct)
    if r == 0:
        return principal / months
    growth = (1 + r) ** months
    return principal * r * growth / (growth - 1)


def standard_emi(
    principal: float, annual_rate_pct: float, months: int, fee: float = 0.0
) -> EmiBreakdown:
    emi = emi_amount(principal, annual_rate_pct, months)
    total_paid = emi * months
    interest = total_paid - principal
    gst_on_interest = interest * CARD_GST_RATE
    gst_on_fee = fee * CARD_GST_RATE
    total_payable = total_paid + fee + gst_on_interest + gst_on_fee
    return EmiBreakdown(
        principal=principal,
        annual_rate_pct=annual_rate_pct,
        months=int(months),
        emi=emi,
        total_paid=total_paid,
        interest=interest,
        fee=fee,
        gst_on_interest=gst_on_interest,
        gst_on_fee=gst_on_fee,
        total_payable=total_payable,
        extra_cost=total_payable - principal,
    )


@dataclass(frozen=True)
class NoCostEmiCheck(_AsDict):
    product_price: float
    emi: float
    months: int
    fee: float
    total_paid: float
    extra: float
    years: float
    # extra / (price * years); a flat approximation, not an IRR solve
    approx_effective_rate_pct: Optional[float]
    approximate: bool = True

    @property
    def truly_no_cost(self) -> bool:
        return self.extra <= 0


def no_cost_emi_check(
    product_price: float, emi: float, months: int, fee: float = 0.0
) -> NoCostEmiCheck:
    if months <= 0:
        raise ValueError("months must be positive")
    total_paid = emi * months + fee
    extra = total_paid - product_price
    years = months / 12
    rate: Optional[float] = None
    if extra > 0:
        rate = extra / (product_price * years) * 100
    return NoCostEmiCheck(
        product_price=product_price,
        emi=emi,
        months=int(months),
        fee=fee,
        total_paid=total_paid,
        extra=extra,
        years=years,
        approx_effective_rate_pct=rate,
    )


@dataclass(frozen=True)
class MinimumDueProjection(_AsDict):
    starting_balance: float
    apr_pct: float
    min_due_pct: float
    months_requested: int
    months_simulated: int
    total_paid: float
    total_interest: float
    remaining_balance: float
    balances: Tuple[float, ...]

    @property
    def cleared(self) -> bool:
        return self.remaining_balance <= 0


def minimum_due_simulation(
    balance: float, apr_pct: float, min_due_pct: float, months: int
) -> MinimumDueProjection:
    """Month-by-month projection of paying only the minimum due.

    Each payment covers at least the month's interest plus one currency unit,
    so the balance shrinks every month even when the minimum-due percentage
    alone would not cover the interest. `balances` holds the balance after
    each simulated month.
    """
    if months <= 0:
        raise ValueError("months must be positive")
    horizon = min(int(months), MAX_SIMULATION_MONTHS)
    rate = apr_pct / 12 / 100
    current = float(balance)
    total_paid = 0.0
    total_interest = 0.0
    history = []
    for _ in range(horizon):
        interest = current * rate
        min_pay = max(current * min_due_pct / 100, interest + 1)
        principal_paid = max(0.0, min_pay - interest)
        current = max(0.0, current - principal_paid)
        total_paid += min_pay
        total_interest += interest
        history.append(current)
        if current <= 0:
            break
    return MinimumDueProjection(
        starting_balance=float(balance),
        apr_pct=apr_pct,
        min_due_pct=min_due_pct,
        months_requested=int(months),
        months_simulated=len(history),
        total_paid=total_paid,
        total_interest=total_interest,
        remaining_balance=current,
        balances=tuple(history),
    )


# === Investment growth ===


@dataclass(frozen=True)
class InvestmentProjection(_AsDict):
    mode: str
    amount: float
    years: float
    annual_rate_pct: float
    invested: float
    future_value: float
    wealth_gain: float
    inflation_pct: Optional[float] = None
    real_future_value: Optional[float] = None


def sip_future_value(monthly_amount: float, years: float, annual_rate_pct: float) -> float:
    """Future value of a monthly SIP treated as an annuity-due."""
    n = years * 12
    r = monthly_rate(annual_rate_pct)
    if r == 0:
        return monthly_amount * n
    return monthly_amount * ((1 + r) ** n - 1) / r * (1 + r)


def lump_sum_future_value(amount: float, years: float, annual_rate_pct: float) -> float:
    return amount * (1 + annual_rate_pct / 100) ** years


def inflation_adjusted(future: float, inflation_pct: float, years: float) -> float:
    """Value of a future amount in today's money."""
    return future / (1 + inflation_pct / 100) ** years


def investment_growth(
    mode: str,
    amount: float,
    years: float,
    annual_rate_pct: float,
    inflation_pct: Optional[float] = None,
) -> InvestmentProjection:
    if mode == "sip":
        future = sip_future_value(amount, years, annual_rate_pct)
        invested = amount * years * 12
    elif mode == "lump_sum":
        future = lump_sum_future_value(amount, years, annual_rate_pct)
        invested = amount
    else:
        raise ValueError(f"unknown investment mode: {mode!r}")
    real: Optional[float] = None
    if inflation_pct:
        real = inflation_adjusted(future, inflation_pct, years)
    return InvestmentProjection(
        mode=mode,
        amount=amount,
        years=years,
        annual_rate_pct=annual_rate_pct,
        invested=invested,
        future_value=future,
        wealth_gain=future - invested,
        inflation_pct=inflation_pct,
        real_future_value=real,
    )


# === Stock averaging ===


@dataclass(frozen=True)
class PositionAverage(_AsDict):
    legs: int
    total_quantity: float
    total_value: float
    average_price: float
    min_price: float
    max_price: float


def weighted_average_cost(legs: Iterable[Leg]) -> PositionAverage:
    """Weighted average buy price across trade legs.

    Raises ValueError when the legs hold no quantity; callers restart the
    session instead of dividing by zero.
    """
    items: Sequence[Leg] = tuple(legs)
    total_qty = sum(leg.quantity for leg in items)
    if not items or total_qty <= 0:
        raise ValueError("weighted average needs a positive total quantity")
    total_value = sum(leg.quantity * leg.price for leg in items)
    prices = [leg.price for leg in items]
    return PositionAverage(
        legs=len(items),
        total_quantity=total_qty,
        total_value=total_value,
        average_price=total_value / total_qty,
        min_price=min(prices),
        max_price=max(prices),
    )
