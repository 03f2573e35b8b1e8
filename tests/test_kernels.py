import pytest

from guidedcalc.engine import kernels
from guidedcalc.models import Leg


def test_standard_emi_example() -> None:
    """100000 at 12% for 12 months gives an EMI of about 8884.88."""
    b = kernels.standard_emi(100_000, 12, 12)
    assert b.emi == pytest.approx(8884.88, abs=0.01)
    assert b.total_paid == pytest.approx(b.emi * 12)
    assert b.interest == pytest.approx(b.total_paid - 100_000)
    assert b.gst_on_interest == pytest.approx(b.interest * 0.18)
    assert b.extra_cost == pytest.approx(b.total_payable - 100_000)


@pytest.mark.parametrize("principal,rate,months", [(15_000, 15.75, 6), (250_000, 36, 24), (999, 1, 3)])
def test_emi_discounts_back_to_principal(principal: float, rate: float, months: int) -> None:
    """The instalments discounted at the monthly rate add up to the principal."""
    emi = kernels.emi_amount(principal, rate, months)
    r = kernels.monthly_rate(rate)
    present = sum(emi / (1 + r) ** k for k in range(1, months + 1))
    assert present == pytest.approx(principal, rel=1e-9)


def test_emi_zero_rate_and_fee_gst() -> None:
    """Zero interest splits the principal evenly; the fee also carries 18% GST."""
    b = kernels.standard_emi(12_000, 0, 12, fee=199)
    assert b.emi == pytest.approx(1000)
    assert b.interest == pytest.approx(0)
    assert b.gst_on_fee == pytest.approx(199 * 0.18)
    assert b.total_payable == pytest.approx(12_000 + 199 + 199 * 0.18)


def test_emi_rejects_non_positive_months() -> None:
    with pytest.raises(ValueError):
        kernels.emi_amount(1000, 12, 0)


def test_gold_price_example() -> None:
    """22K, 10 g at 7000/g with 3000 making comes to about 69181.67."""
    q = kernels.gold_price(22, 10, 7000, 3000)
    assert q.purity_factor == pytest.approx(0.91667, abs=1e-5)
    assert q.gold_value == pytest.approx(64166.67, abs=0.01)
    assert q.subtotal == pytest.approx(67166.67, abs=0.01)
    assert q.gst == pytest.approx(2015.00, abs=0.01)
    assert q.total == pytest.approx(69181.67, abs=0.01)


def test_sip_example() -> None:
    """5000 a month for 5 years at 12% grows to about 412432."""
    p = kernels.investment_growth("sip", 5000, 5, 12)
    assert p.invested == pytest.approx(300_000)
    assert p.future_value == pytest.approx(412432.2, rel=1e-5)
    assert p.wealth_gain == pytest.approx(p.future_value - 300_000)
    assert p.real_future_value is None


def test_lump_sum_with_inflation() -> None:
    p = kernels.investment_growth("lump_sum", 100_000, 10, 12, inflation_pct=6)
    assert p.invested == 100_000
    assert p.future_value == pytest.approx(100_000 * 1.12**10)
    assert p.real_future_value == pytest.approx(p.future_value / 1.06**10)


def test_investment_unknown_mode() -> None:
    with pytest.raises(ValueError):
        kernels.investment_growth("weekly", 100, 1, 10)


def test_weighted_average_example() -> None:
    avg = kernels.weighted_average_cost([Leg(25, 100), Leg(75, 80)])
    assert avg.total_quantity == 100
    assert avg.average_price == pytest.approx(85.00)
    assert avg.min_price == 80
    assert avg.max_price == 100


def test_weighted_average_lies_between_prices() -> None:
    legs = [Leg(3, 410.5), Leg(17, 388), Leg(1, 512.25)]
    avg = kernels.weighted_average_cost(legs)
    assert avg.min_price <= avg.average_price <= avg.max_price


def test_weighted_average_without_legs() -> None:
    with pytest.raises(ValueError):
        kernels.weighted_average_cost([])


def test_minimum_due_balance_never_increases() -> None:
    """Even when the minimum due barely covers interest, the balance shrinks."""
    p = kernels.minimum_due_simulation(50_000, 42, 1, 24)
    previous = 50_000.0
    for balance in p.balances:
        assert balance <= previous
        previous = balance
    assert p.months_simulated == 24
    assert p.total_paid == pytest.approx(p.total_interest + (50_000 - p.remaining_balance))


def test_minimum_due_stops_when_cleared() -> None:
    p = kernels.minimum_due_simulation(1000, 0, 100, 12)
    assert p.cleared
    assert p.months_simulated == 1
    assert p.remaining_balance == 0


def test_minimum_due_horizon_is_capped() -> None:
    p = kernels.minimum_due_simulation(1_000_000, 36, 1, 600)
    assert p.months_requested == 600
    assert p.months_simulated <= kernels.MAX_SIMULATION_MONTHS


def test_no_cost_emi_with_hidden_cost() -> None:
    c = kernels.no_cost_emi_check(30_000, 5100, 6, fee=199)
    assert c.total_paid == pytest.approx(30_799)
    assert c.extra == pytest.approx(799)
    assert c.approx_effective_rate_pct == pytest.approx(799 / (30_000 * 0.5) * 100)
    assert c.approximate is True
    assert not c.truly_no_cost


def test_no_cost_emi_truly_free() -> None:
    c = kernels.no_cost_emi_check(30_000, 5000, 6)
    assert c.extra == pytest.approx(0)
    assert c.approx_effective_rate_pct is None
    assert c.truly_no_cost
