from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Tuple

StepKind = Literal["choice", "number"]
EventKind = Literal["prompt", "echo", "error", "result"]

# (value, answers so far) -> True when the value should be confirmed first
SuspicionCheck = Callable[[float, Mapping[str, Any]], bool]


@dataclass(frozen=True)
class ChoiceOption:
    """One selectable answer of a choice step.

    `branch` holds the steps that follow when this option is picked, which is
    how a tool switches between its fixed sequences (EMI variant, SIP vs lump
    sum, inflation on or off).
    """

    value: str
    label: str
    note: str = ""
    branch: Tuple["StepDescriptor", ...] = ()


@dataclass(frozen=True)
class FieldRule:
    """Hard bounds and soft suspicion thresholds for one numeric field."""

    minimum: float = 0.0
    maximum: float = float("inf")
    min_exclusive: bool = False
    max_exclusive: bool = False
    integer: bool = False
    blank_default: Optional[float] = None
    suspicious_above: Optional[float] = None
    suspicious_below: Optional[float] = None
    suspicious_check: Optional[SuspicionCheck] = None
    hint: str = "Please enter a valid positive number."
    example: str = "Please enter a valid number, for example 5 or 12.5."
    suspicious_message: str = "This value looks a bit unusual. Are you sure it's correct?"


@dataclass(frozen=True)
class StepDescriptor:
    """One question of a tool's fixed sequence."""

    id: str
    kind: StepKind
    prompt: str
    options: Tuple[ChoiceOption, ...] = ()
    rule: Optional[FieldRule] = None
    placeholder: str = ""
    unit: str = ""

    @property
    def minimum(self) -> Optional[float]:
        return self.rule.minimum if self.rule is not None else None

    def option_for(self, raw: Any) -> Optional[ChoiceOption]:
        """Return the option matching raw on value or label (case-insensitive)."""
        key = str(raw if raw is not None else "").strip().lower()
        if not key:
            return None
        for opt in self.options:
            if key in (str(opt.value).lower(), opt.label.lower()):
                return opt
        return None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for display, leaving out nested branch steps and callables."""
        payload: Dict[str, Any] = {
            "id": self.id,
            "kind": self.kind,
            "prompt": self.prompt,
        }
        if self.kind == "choice":
            payload["options"] = [
                {"value": o.value, "label": o.label, "note": o.note}
                for o in self.options
            ]
        else:
            payload["minimum"] = self.minimum
            payload["placeholder"] = self.placeholder
            payload["unit"] = self.unit
        return payload


@dataclass(frozen=True)
class Leg:
    """One recorded trade before the stock average is aggregated."""

    quantity: float
    price: float


@dataclass(frozen=True)
class PendingSuspicious:
    """A valid but implausible value waiting for confirm or edit."""

    field_id: str
    value: float


@dataclass(frozen=True)
class SessionState:
    """Per-tool dialogue state.

    Transitions never mutate a SessionState; they build a new one with
    `dataclasses.replace`, so two sessions compare equal field by field.
    """

    tool_id: str
    answers: Dict[str, Any] = field(default_factory=dict)
    current_step_index: int = 0
    invalid_attempts: Dict[str, int] = field(default_factory=dict)
    pending_suspicious: Optional[PendingSuspicious] = None
    legs: Tuple[Leg, ...] = ()
    result: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["legs"] = [asdict(leg) for leg in self.legs]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionState":
        pending = data.get("pending_suspicious")
        return cls(
            tool_id=str(data.get("tool_id", "")),
            answers=dict(data.get("answers") or {}),
            current_step_index=int(data.get("current_step_index", 0)),
            invalid_attempts={
                k: int(v) for k, v in (data.get("invalid_attempts") or {}).items()
            },
            pending_suspicious=(
                PendingSuspicious(
                    field_id=str(pending["field_id"]), value=float(pending["value"])
                )
                if pending
                else None
            ),
            legs=tuple(
                Leg(quantity=float(leg["quantity"]), price=float(leg["price"]))
                for leg in data.get("legs") or []
            ),
            result=data.get("result"),
        )


@dataclass(frozen=True)
class DisplayEvent:
    """A single item for the presentation layer to show."""

    kind: EventKind
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "payload": self.payload}


class IncompleteSessionState(Exception):
    """A result was requested while required answers were still missing."""

    def __init__(self, tool_id: str, missing: Tuple[str, ...]) -> None:
        self.tool_id = tool_id
        self.missing = missing
        super().__init__(f"{tool_id}: missing {', '.join(missing) or 'data'}")
