"""Pure state transitions of the guided dialogue.

Every operation takes a ToolConfig and the current SessionState and returns
a Transition: the next SessionState (a new object, never a mutated one) and
the display events the transition produced. Nothing here sleeps, schedules
or talks to the network; the async controller layers that on top.

    greeting -> step prompt(i) -> validate
        invalid     -> step prompt(i)         (counter + 1)
        suspicious  -> confirming             (confirm -> accept, edit -> step prompt(i))
        accepted    -> step prompt(i + 1) ... -> result -> restart offered
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from ..models import (
    DisplayEvent,
    FieldRule,
    IncompleteSessionState,
    Leg,
    PendingSuspicious,
    SessionState,
    StepDescriptor,
)
from .formatting import format_answer
from .sequencer import active_steps, all_field_ids, current_step, missing_fields
from .tools import ToolConfig, ToolResult
from .validation import VerdictStatus, guidance_message, validate_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    state: SessionState
    events: Tuple[DisplayEvent, ...] = ()
    result: Optional[ToolResult] = None
    restarted: bool = False


# === Events ===


def say(text: str, **extra: Any) -> DisplayEvent:
    return DisplayEvent("prompt", {"text": text, **extra})


def step_prompt(step: StepDescriptor) -> DisplayEvent:
    return DisplayEvent("prompt", {"text": step.prompt, "step": step.to_payload()})


def confirm_prompt(step: StepDescriptor, pending: PendingSuspicious) -> DisplayEvent:
    message = step.rule.suspicious_message if step.rule is not None else ""
    return DisplayEvent(
        "prompt",
        {
            "text": message,
            "confirm": {
                "field_id": pending.field_id,
                "value": pending.value,
                "display": format_answer(step, pending.value),
            },
            "actions": ["confirm", "edit"],
        },
    )


def echo(step: StepDescriptor, value: Any) -> DisplayEvent:
    return DisplayEvent("echo", {"field_id": step.id, "text": format_answer(step, value)})


def error(code: str, message: str, field_id: Optional[str] = None, attempts: int = 0) -> DisplayEvent:
    return DisplayEvent(
        "error",
        {"code": code, "message": message, "field_id": field_id, "attempts": attempts},
    )


# === Session lifecycle ===


def new_session(tool: ToolConfig) -> SessionState:
    """A fresh session: nothing answered, all counters at zero."""
    ids = all_field_ids(tool.steps)
    return SessionState(
        tool_id=tool.tool_id,
        answers={i: None for i in ids},
        current_step_index=0,
        invalid_attempts={i: 0 for i in ids},
    )


def begin(tool: ToolConfig) -> Transition:
    state = new_session(tool)
    events = [say(line) for line in tool.greeting]
    events.append(step_prompt(tool.steps[0]))
    return Transition(state=state, events=tuple(events))


def restart(tool: ToolConfig) -> Transition:
    """Hard reset. Calling it repeatedly always yields an equal fresh session."""
    state = new_session(tool)
    events = [say(line) for line in tool.restart_lines]
    events.append(step_prompt(tool.steps[0]))
    return Transition(state=state, events=tuple(events), restarted=True)


def render_current_step(tool: ToolConfig, state: SessionState) -> Tuple[DisplayEvent, ...]:
    """Events that re-present whatever the session is waiting for."""
    step = current_step(tool.steps, state)
    if state.pending_suspicious is not None and step is not None:
        return (confirm_prompt(step, state.pending_suspicious),)
    if step is None:
        events: List[DisplayEvent] = []
        if state.result is not None:
            events.append(DisplayEvent("result", state.result))
        events.append(say(tool.closing_line, actions=["restart"]))
        return tuple(events)
    return (step_prompt(step),)


# === Answers ===


def _unchanged(state: SessionState, code: str, message: str, field_id: Optional[str] = None) -> Transition:
    logger.debug("Action ignored for %s: %s", state.tool_id, code)
    return Transition(state=state, events=(error(code, message, field_id),))


def _coerce(step: StepDescriptor, value: float) -> Any:
    if step.rule is not None and step.rule.integer:
        return int(value)
    return value


def _reject(tool: ToolConfig, state: SessionState, step: StepDescriptor, message: str) -> Transition:
    attempts = state.invalid_attempts.get(step.id, 0) + 1
    logger.info("Rejected %s.%s (attempt %d)", tool.tool_id, step.id, attempts)
    next_state = dataclasses.replace(
        state, invalid_attempts={**state.invalid_attempts, step.id: attempts}
    )
    return Transition(
        state=next_state,
        events=(error("invalid_input", message, step.id, attempts),),
    )


def submit_answer(tool: ToolConfig, state: SessionState, field_id: str, raw: Any) -> Transition:
    if state.pending_suspicious is not None:
        return _unchanged(
            state,
            "confirmation_pending",
            "Please confirm or edit the flagged value first.",
            state.pending_suspicious.field_id,
        )
    step = current_step(tool.steps, state)
    if step is None:
        return _unchanged(
            state,
            "session_finished",
            "This calculation is finished. Start a new one to continue.",
        )
    if field_id != step.id:
        return _unchanged(
            state,
            "unexpected_field",
            f"I'm waiting for '{step.id}' right now.",
            field_id,
        )

    if step.kind == "choice":
        option = step.option_for(raw)
        if option is None:
            labels = ", ".join(o.label for o in step.options)
            return _reject(tool, state, step, f"Please pick one of: {labels}.")
        return _accept(tool, state, step, option.value, [echo(step, option.value)])

    rule = step.rule or FieldRule()
    verdict = validate_number(rule, raw, state.answers)
    if verdict.status is VerdictStatus.INVALID:
        attempts = state.invalid_attempts.get(step.id, 0) + 1
        return _reject(tool, state, step, guidance_message(rule, attempts))

    value = _coerce(step, verdict.value)
    if verdict.status is VerdictStatus.SUSPICIOUS:
        pending = PendingSuspicious(field_id=step.id, value=value)
        logger.info("Suspicious %s.%s=%s awaiting confirmation", tool.tool_id, step.id, value)
        return Transition(
            state=dataclasses.replace(state, pending_suspicious=pending),
            events=(echo(step, value), confirm_prompt(step, pending)),
        )
    return _accept(tool, state, step, value, [echo(step, value)])


def confirm_suspicious(tool: ToolConfig, state: SessionState) -> Transition:
    pending = state.pending_suspicious
    if pending is None:
        return _unchanged(state, "nothing_pending", "There is no value waiting for confirmation.")
    step = current_step(tool.steps, state)
    if step is None or step.id != pending.field_id:
        # only reachable with a tampered snapshot
        return _unchanged(
            dataclasses.replace(state, pending_suspicious=None),
            "stale_confirmation",
            "That value no longer matches the current question.",
        )
    cleared = dataclasses.replace(state, pending_suspicious=None)
    return _accept(tool, cleared, step, pending.value, [say(tool.confirm_line)])


def edit_suspicious(tool: ToolConfig, state: SessionState) -> Transition:
    if state.pending_suspicious is None:
        return _unchanged(state, "nothing_pending", "There is no value waiting for confirmation.")
    cleared = dataclasses.replace(state, pending_suspicious=None)
    step = current_step(tool.steps, cleared)
    events: List[DisplayEvent] = [say(tool.edit_line)]
    if step is not None:
        events.append(step_prompt(step))
    return Transition(state=cleared, events=tuple(events))


def _accept(
    tool: ToolConfig,
    state: SessionState,
    step: StepDescriptor,
    value: Any,
    events: Iterable[DisplayEvent],
) -> Transition:
    out = list(events)
    answers = {**state.answers, step.id: value}
    attempts = {**state.invalid_attempts, step.id: 0}
    legs = state.legs

    if tool.leg_fields is not None and step.id == tool.leg_fields[-1]:
        qty_field, price_field = tool.leg_fields
        legs = legs + (Leg(float(answers[qty_field]), float(answers[price_field])),)
        out.append(say(tool.leg_added_line.format(count=len(legs))))

    if tool.repeat_field is not None and step.id == tool.repeat_field and value == tool.repeat_value:
        cleared = {**answers, **{s.id: None for s in active_steps(tool.steps, answers)}}
        looped = dataclasses.replace(
            state,
            answers=cleared,
            invalid_attempts=attempts,
            legs=legs,
            current_step_index=0,
            pending_suspicious=None,
        )
        if tool.repeat_line:
            out.append(say(tool.repeat_line))
        out.append(step_prompt(tool.steps[0]))
        logger.debug("%s looped back with %d leg(s)", tool.tool_id, len(legs))
        return Transition(state=looped, events=tuple(out))

    advanced = dataclasses.replace(
        state,
        answers=answers,
        invalid_attempts=attempts,
        legs=legs,
        current_step_index=state.current_step_index + 1,
        pending_suspicious=None,
    )
    logger.debug("%s.%s accepted -> step %d", tool.tool_id, step.id, advanced.current_step_index)
    upcoming = current_step(tool.steps, advanced)
    if upcoming is not None:
        out.append(step_prompt(upcoming))
        return Transition(state=advanced, events=tuple(out))
    return _finish(tool, advanced, out)


def _finish(tool: ToolConfig, state: SessionState, events: List[DisplayEvent]) -> Transition:
    try:
        missing = missing_fields(tool.steps, state.answers)
        if missing:
            raise IncompleteSessionState(tool.tool_id, missing)
        result = tool.compute(state.answers, state.legs)
    except IncompleteSessionState as e:
        logger.warning("Integrity check failed, forcing restart: %s", e)
        fresh = new_session(tool)
        events.append(error("incomplete_session", tool.integrity_message))
        events.append(step_prompt(tool.steps[0]))
        return Transition(state=fresh, events=tuple(events), restarted=True)

    payload = result.to_payload()
    events.append(say(tool.crunching_line))
    events.append(DisplayEvent("result", payload))
    events.append(say(tool.closing_line, actions=["restart"]))
    return Transition(
        state=dataclasses.replace(state, result=payload),
        events=tuple(events),
        result=result,
    )
