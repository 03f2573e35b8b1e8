import dataclasses
from typing import Any, Iterable, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from guidedcalc.engine import dialogue
from guidedcalc.engine.dialogue import Transition
from guidedcalc.engine.tools import CREDIT_EMI, GOLD, INVESTMENT, STOCK_AVERAGE, ToolConfig
from guidedcalc.models import Leg, SessionState


def answer_all(
    tool: ToolConfig, answers: Iterable[Tuple[str, Any]], state: Optional[SessionState] = None
) -> Transition:
    """Feed answers in order and return the last transition."""
    transition = dialogue.begin(tool) if state is None else Transition(state=state)
    for field_id, raw in answers:
        transition = dialogue.submit_answer(tool, transition.state, field_id, raw)
    return transition


def kinds(transition: Transition) -> list:
    return [e.kind for e in transition.events]


def error_codes(transition: Transition) -> list:
    return [e.payload["code"] for e in transition.events if e.kind == "error"]


GOLD_ANSWERS = [("carat", "22"), ("weight", "10"), ("rate", "7000"), ("making", "3000")]


def test_begin_greets_then_asks_first_step() -> None:
    t = dialogue.begin(GOLD)
    assert kinds(t) == ["prompt"] * (len(GOLD.greeting) + 1)
    assert t.events[-1].payload["step"]["id"] == "carat"
    assert [o["label"] for o in t.events[-1].payload["step"]["options"]] == ["18K", "22K", "24K"]
    assert t.state.current_step_index == 0
    assert all(v is None for v in t.state.answers.values())


def test_gold_happy_path() -> None:
    t = answer_all(GOLD, GOLD_ANSWERS)
    assert t.result is not None
    assert t.result.numeric_result == pytest.approx(69181.67, abs=0.01)
    assert "result" in kinds(t)
    assert t.events[-1].payload["actions"] == ["restart"]
    assert t.state.result["tool_id"] == "gold"
    assert t.state.answers["making"] == 3000.0


def test_choice_matches_label_case_insensitively() -> None:
    t = answer_all(GOLD, [("carat", "22k")])
    assert t.state.answers["carat"] == "22"
    assert t.state.current_step_index == 1
    assert t.events[0].kind == "echo"
    assert t.events[0].payload["text"] == "22K"


def test_unknown_choice_is_rejected() -> None:
    t = answer_all(GOLD, [("carat", "21")])
    assert error_codes(t) == ["invalid_input"]
    assert t.events[0].payload["message"] == "Please pick one of: 18K, 22K, 24K."
    assert t.state.current_step_index == 0
    assert t.state.invalid_attempts["carat"] == 1


def test_invalid_input_never_advances() -> None:
    t = answer_all(GOLD, [("carat", "22")])
    index = t.state.current_step_index
    for raw in ["abc", "-3", "0", "", "20000"]:
        t = dialogue.submit_answer(GOLD, t.state, "weight", raw)
        assert t.state.current_step_index == index
        assert t.state.answers["weight"] is None
        assert error_codes(t) == ["invalid_input"]
    assert t.state.invalid_attempts["weight"] == 5


def test_guidance_escalates_on_third_rejection() -> None:
    rule = GOLD.steps[1].rule
    t = answer_all(GOLD, [("carat", "22")])
    messages = []
    for _ in range(4):
        t = dialogue.submit_answer(GOLD, t.state, "weight", "heavy")
        messages.append(t.events[0].payload["message"])
    assert messages == [rule.hint, rule.hint, rule.example, rule.example]
    assert t.events[0].payload["attempts"] == 4


def test_accepting_resets_counter() -> None:
    t = answer_all(GOLD, [("carat", "22"), ("weight", "x"), ("weight", "10")])
    assert t.state.invalid_attempts["weight"] == 0
    assert t.state.current_step_index == 2


def test_suspicious_value_waits_for_confirmation() -> None:
    t = answer_all(GOLD, [("carat", "22"), ("weight", "600")])
    assert t.state.pending_suspicious is not None
    assert t.state.pending_suspicious.value == 600
    assert t.state.current_step_index == 1
    assert t.state.answers["weight"] is None
    assert kinds(t) == ["echo", "prompt"]
    assert t.events[1].payload["actions"] == ["confirm", "edit"]
    assert t.events[1].payload["confirm"]["display"] == "600 g"

    blocked = dialogue.submit_answer(GOLD, t.state, "weight", "10")
    assert error_codes(blocked) == ["confirmation_pending"]
    assert blocked.state == t.state

    confirmed = dialogue.confirm_suspicious(GOLD, t.state)
    assert confirmed.state.pending_suspicious is None
    assert confirmed.state.answers["weight"] == 600
    assert confirmed.state.current_step_index == 2
    assert confirmed.events[0].payload["text"] == GOLD.confirm_line
    assert confirmed.events[-1].payload["step"]["id"] == "rate"


def test_edit_returns_to_same_step() -> None:
    t = answer_all(GOLD, [("carat", "22"), ("weight", "600")])
    edited = dialogue.edit_suspicious(GOLD, t.state)
    assert edited.state.pending_suspicious is None
    assert edited.state.current_step_index == 1
    assert edited.state.answers["weight"] is None
    assert edited.events[-1].payload["step"]["id"] == "weight"


def test_confirm_without_pending_value() -> None:
    state = dialogue.begin(GOLD).state
    t = dialogue.confirm_suspicious(GOLD, state)
    assert error_codes(t) == ["nothing_pending"]
    assert t.state is state
    assert error_codes(dialogue.edit_suspicious(GOLD, state)) == ["nothing_pending"]


def test_suspicious_value_never_reaches_compute() -> None:
    compute = MagicMock(side_effect=GOLD.compute)
    tool = dataclasses.replace(GOLD, compute=compute)
    # making more than twice the 64166.67 gold value
    t = answer_all(tool, GOLD_ANSWERS[:3] + [("making", "200000")])
    assert t.result is None
    assert t.state.pending_suspicious is not None
    t = dialogue.edit_suspicious(tool, t.state)
    compute.assert_not_called()

    t = dialogue.submit_answer(tool, t.state, "making", "200000")
    t = dialogue.confirm_suspicious(tool, t.state)
    compute.assert_called_once()
    assert t.result is not None


def test_wrong_field_is_ignored() -> None:
    state = dialogue.begin(GOLD).state
    t = dialogue.submit_answer(GOLD, state, "rate", "7000")
    assert error_codes(t) == ["unexpected_field"]
    assert t.state is state


def test_finished_session_rejects_answers() -> None:
    done = answer_all(GOLD, GOLD_ANSWERS)
    t = dialogue.submit_answer(GOLD, done.state, "carat", "22")
    assert error_codes(t) == ["session_finished"]


def test_restart_is_idempotent() -> None:
    mid = answer_all(GOLD, GOLD_ANSWERS[:2] + [("rate", "abc")])
    first = dialogue.restart(GOLD)
    second = dialogue.restart(GOLD)
    assert first.restarted
    assert first.state == second.state == dialogue.new_session(GOLD)
    assert first.state != mid.state
    assert first.events[-1].payload["step"]["id"] == "carat"


def test_missing_answer_forces_restart() -> None:
    tampered = dataclasses.replace(
        dialogue.new_session(GOLD),
        answers={"carat": "22", "weight": None, "rate": 7000.0, "making": None},
        current_step_index=3,
    )
    t = dialogue.submit_answer(GOLD, tampered, "making", "3000")
    assert t.restarted
    assert t.result is None
    assert error_codes(t) == ["incomplete_session"]
    assert t.state == dialogue.new_session(GOLD)
    assert t.events[-1].payload["step"]["id"] == "carat"


def test_standard_emi_with_blank_fee() -> None:
    t = answer_all(
        CREDIT_EMI,
        [("variant", "standard"), ("amount", "100000"), ("rate", "12"), ("months", "12"), ("fee", "")],
    )
    assert t.result is not None
    assert t.result.variant == "standard"
    assert t.result.figures["emi"] == pytest.approx(8884.88, abs=0.01)
    assert t.result.figures["fee"] == 0
    assert isinstance(t.state.answers["months"], int)


def test_costly_emi_gets_warning_line() -> None:
    t = answer_all(
        CREDIT_EMI,
        [("variant", "standard"), ("amount", "100000"), ("rate", "36"), ("months", "24"), ("fee", "0")],
    )
    assert any("costing a bit too much" in note for note in t.result.notes)


def test_fractional_months_rejected() -> None:
    t = answer_all(CREDIT_EMI, [("variant", "standard"), ("amount", "100000"), ("rate", "12"), ("months", "6.5")])
    assert error_codes(t) == ["invalid_input"]
    assert t.state.answers["months"] is None


def test_min_due_branch() -> None:
    t = answer_all(
        CREDIT_EMI,
        [("variant", "min_due"), ("balance", "50000"), ("apr", "42"), ("min_due_pct", "5"), ("months", "12")],
    )
    assert t.result.variant == "min_due"
    balances = t.result.figures["balances"]
    assert balances == sorted(balances, reverse=True)


def test_no_cost_branch_flags_hidden_cost() -> None:
    t = answer_all(
        CREDIT_EMI,
        [("variant", "no_cost"), ("price", "30000"), ("emi", "5100"), ("months", "6"), ("fee", "199")],
    )
    assert t.result.numeric_result == pytest.approx(799)
    assert any("isn't truly free" in note for note in t.result.notes)


def test_investment_with_and_without_inflation() -> None:
    base = [("mode", "sip"), ("amount", "5000"), ("years", "5"), ("rate", "12")]
    plain = answer_all(INVESTMENT, base + [("adjust_inflation", "no")])
    assert plain.result.figures["invested"] == pytest.approx(300_000)
    assert plain.result.figures["real_future_value"] is None

    adjusted = answer_all(INVESTMENT, base + [("adjust_inflation", "yes"), ("inflation", "6")])
    assert adjusted.result.figures["real_future_value"] < adjusted.result.figures["future_value"]


def test_stock_average_loops_over_trades() -> None:
    t = answer_all(STOCK_AVERAGE, [("quantity", "25"), ("price", "100")])
    assert t.state.legs == (Leg(25, 100),)
    assert t.events[-1].payload["step"]["id"] == "add_more"

    t = dialogue.submit_answer(STOCK_AVERAGE, t.state, "add_more", "yes")
    assert t.state.current_step_index == 0
    assert t.state.answers["quantity"] is None
    assert len(t.state.legs) == 1

    t = answer_all(STOCK_AVERAGE, [("quantity", "75"), ("price", "80"), ("add_more", "no")], t.state)
    assert t.result is not None
    assert t.result.numeric_result == pytest.approx(85.0)
    assert t.result.figures["legs"] == 2


def test_stock_average_without_legs_restarts() -> None:
    tampered = dataclasses.replace(
        dialogue.new_session(STOCK_AVERAGE),
        answers={"quantity": 10, "price": 100.0, "add_more": None},
        current_step_index=2,
    )
    t = dialogue.submit_answer(STOCK_AVERAGE, tampered, "add_more", "no")
    assert t.restarted
    assert error_codes(t) == ["incomplete_session"]
    assert t.state.legs == ()


def test_render_current_step() -> None:
    pending = answer_all(GOLD, [("carat", "22"), ("weight", "600")]).state
    (event,) = dialogue.render_current_step(GOLD, pending)
    assert event.payload["actions"] == ["confirm", "edit"]

    done = answer_all(GOLD, GOLD_ANSWERS).state
    events = dialogue.render_current_step(GOLD, done)
    assert [e.kind for e in events] == ["result", "prompt"]


def test_zero_quantity_is_rejected() -> None:
    t = answer_all(STOCK_AVERAGE, [("quantity", "0")])
    assert error_codes(t) == ["invalid_input"]
    assert t.state.legs == ()
    assert t.state.current_step_index == 0
