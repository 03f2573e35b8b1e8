"""Validation kernel: classify a raw answer as invalid, suspicious or accepted.

Checks run in a fixed order: presence and type, hard domain bounds, then the
soft suspicion heuristic. Only the last one can yield SUSPICIOUS, and a
suspicious value is never rejected here; the dialogue asks the user to
confirm it.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from ..models import FieldRule

ESCALATION_THRESHOLD = 3


class VerdictStatus(str, Enum):
    INVALID = "invalid"
    SUSPICIOUS = "suspicious"
    ACCEPTED = "accepted"


@dataclass(frozen=True)
class Verdict:
    status: VerdictStatus
    value: Optional[float] = None
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.status is VerdictStatus.ACCEPTED


def parse_number(raw: Any, blank_default: Optional[float] = None) -> Optional[float]:
    """Return raw as a finite float, or None when it is blank or not a number.

    Booleans are not numbers here even though Python treats them as ints.
    Thousands separators ("1,50,000" or "150,000") are tolerated.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw if raw is not None else "").strip().replace(",", "")
        if not text:
            return blank_default
        try:
            value = float(text)
        except ValueError:
            return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _in_domain(rule: FieldRule, value: float) -> bool:
    if rule.min_exclusive:
        if value <= rule.minimum:
            return False
    elif value < rule.minimum:
        return False
    if rule.max_exclusive:
        if value >= rule.maximum:
            return False
    elif value > rule.maximum:
        return False
    return True


def is_suspicious(
    rule: FieldRule, value: float, answers: Optional[Mapping[str, Any]] = None
) -> bool:
    if rule.suspicious_above is not None and value > rule.suspicious_above:
        return True
    if rule.suspicious_below is not None and value < rule.suspicious_below:
        return True
    if rule.suspicious_check is not None:
        return bool(rule.suspicious_check(value, answers or {}))
    return False


def validate_number(
    rule: FieldRule, raw: Any, answers: Optional[Mapping[str, Any]] = None
) -> Verdict:
    """Classify raw against rule; answers feeds context-dependent suspicion checks."""
    value = parse_number(raw, rule.blank_default)
    if value is None:
        return Verdict(VerdictStatus.INVALID, reason="not_a_number")
    if rule.integer and not value.is_integer():
        return Verdict(VerdictStatus.INVALID, value=value, reason="not_whole")
    if not _in_domain(rule, value):
        return Verdict(VerdictStatus.INVALID, value=value, reason="out_of_range")
    if is_suspicious(rule, value, answers):
        return Verdict(VerdictStatus.SUSPICIOUS, value=value)
    return Verdict(VerdictStatus.ACCEPTED, value=value)


def guidance_message(rule: FieldRule, attempts: int) -> str:
    """Short hint for the first rejections, an explicit example from the third on."""
    if attempts >= ESCALATION_THRESHOLD:
        return rule.example
    return rule.hint
