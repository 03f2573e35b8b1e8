"""Step sequencer.

A tool's questions are a fixed tuple of steps. A choice step may switch to
another fixed tuple through `ChoiceOption.branch`; once the choice is
answered its branch is spliced in right after it. The session index never
passes an unanswered step, so the splice always lands ahead of it and
step k is answered before step k+1.
"""

from typing import Any, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..models import SessionState, StepDescriptor


def active_steps(
    steps: Sequence[StepDescriptor], answers: Mapping[str, Any]
) -> Tuple[StepDescriptor, ...]:
    """Return the flattened sequence selected by the choices answered so far."""
    resolved: List[StepDescriptor] = []
    for step in steps:
        resolved.append(step)
        if step.kind != "choice":
            continue
        # an unanswered choice contributes no branch yet
        option = step.option_for(answers.get(step.id))
        if option is not None and option.branch:
            resolved.extend(active_steps(option.branch, answers))
    return tuple(resolved)


def iter_all_steps(steps: Sequence[StepDescriptor]) -> Iterator[StepDescriptor]:
    """Yield every step of every branch, depth first."""
    for step in steps:
        yield step
        for opt in step.options:
            yield from iter_all_steps(opt.branch)


def all_field_ids(steps: Sequence[StepDescriptor]) -> Tuple[str, ...]:
    seen: List[str] = []
    for step in iter_all_steps(steps):
        if step.id not in seen:
            seen.append(step.id)
    return tuple(seen)


def current_step(
    steps: Sequence[StepDescriptor], state: SessionState
) -> Optional[StepDescriptor]:
    """Return the step to ask now, or None once the session is terminal."""
    resolved = active_steps(steps, state.answers)
    if state.current_step_index >= len(resolved):
        return None
    return resolved[state.current_step_index]


def is_terminal(steps: Sequence[StepDescriptor], state: SessionState) -> bool:
    return current_step(steps, state) is None


def missing_fields(
    steps: Sequence[StepDescriptor], answers: Mapping[str, Any]
) -> Tuple[str, ...]:
    """Required fields of the active sequence that are still unanswered."""
    return tuple(
        step.id for step in active_steps(steps, answers) if answers.get(step.id) is None
    )
