from typing import Any

from ..models import StepDescriptor


def format_inr(value: float, decimals: int = 2) -> str:
    """Rupee amount with Indian digit grouping, e.g. 1500000 -> ₹15,00,000."""
    sign = "-" if value < 0 else ""
    whole, _, frac = f"{abs(value):.{decimals}f}".partition(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    frac = frac.rstrip("0")
    return f"{sign}₹{whole}" + (f".{frac}" if frac else "")


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.4f}".rstrip("0").rstrip(".")


def format_answer(step: StepDescriptor, value: Any) -> str:
    """Echo text for an accepted or flagged answer."""
    if step.kind == "choice":
        option = step.option_for(value)
        return option.label if option is not None else str(value)
    number = float(value)
    if step.unit == "₹":
        return format_inr(number)
    if step.unit == "%":
        return f"{format_number(number)}%"
    if step.unit:
        return f"{format_number(number)} {step.unit}"
    return format_number(number)
