"""
Declarative field validators.

Each rule is a callable (value, context) -> message or None. A rule may also
return an awaitable (for checks that call out); the modal keys those by a
per-field generation so a slow result never overwrites a newer one.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

Message = Optional[str]
Rule = Callable[[Any, "ValidationContext"], Union[Message, Awaitable[Message]]]


@dataclass
class ValidationContext:
    values: Mapping[str, Any]
    is_edit: bool = False
    record_id: Any = None
    roster: List[Mapping[str, Any]] = field(default_factory=list)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def required(message: str) -> Rule:
    def rule(value, ctx):
        if isinstance(value, bool):
            return None
        return None if _text(value).strip() else message
    return rule


def required_on_create(message: str) -> Rule:
    """Required when creating; blank means "keep current" when editing."""
    def rule(value, ctx):
        if ctx.is_edit:
            return None
        return None if _text(value) else message
    return rule


def pattern(regex: str, message: str) -> Rule:
    compiled = re.compile(regex)

    def rule(value, ctx):
        text = _text(value).strip()
        if not text:
            return None
        return None if compiled.fullmatch(text) else message
    return rule


def length(message: str, min_length: int = 0, max_length: Optional[int] = None) -> Rule:
    def rule(value, ctx):
        text = _text(value)
        if not text:
            return None
        if len(text) < min_length:
            return message
        if max_length is not None and len(text) > max_length:
            return message
        return None
    return rule


def digits(count: int, message: str) -> Rule:
    """Optional value that must hold exactly `count` digits once formatting is stripped."""
    def rule(value, ctx):
        stripped = re.sub(r"\D", "", _text(value))
        if not stripped:
            return None
        return None if len(stripped) == count else message
    return rule


def matches(other_field: str, message: str) -> Rule:
    """Cross-field agreement (password confirmation)."""
    def rule(value, ctx):
        other = _text(ctx.values.get(other_field))
        mine = _text(value)
        if not other and not mine:
            return None
        return None if mine == other else message
    return rule


def password_strength(message: str) -> Rule:
    def rule(value, ctx):
        text = _text(value)
        if not text:
            return None
        if re.search(r"[a-z]", text) and re.search(r"[A-Z]", text) and re.search(r"\d", text):
            return None
        return message
    return rule


def unique(field_name: str, message: str, case_insensitive: bool = False) -> Rule:
    """No other record in the loaded roster may hold the same value.

    Checked against the last fetched roster only; the server remains the
    authority and its conflict errors are merged into the form as well.
    """
    def normalize(value):
        text = _text(value).strip()
        return text.lower() if case_insensitive else text

    def rule(value, ctx):
        wanted = normalize(value)
        if not wanted:
            return None
        for record in ctx.roster:
            if ctx.is_edit and record.get("id") == ctx.record_id:
                continue
            if normalize(record.get(field_name)) == wanted:
                return message
        return None
    return rule


async def run_rules_async(rules: Iterable[Rule], value: Any, ctx: ValidationContext) -> Message:
    """First failing message, awaiting rules that return awaitables."""
    for rule in rules:
        message = rule(value, ctx)
        if hasattr(message, "__await__"):
            message = await message
        if message:
            return message
    return None


def aggregate(errors: Mapping[str, str], labels: Mapping[str, str]) -> str:
    """Field-labelled error list shown when a submit attempt fails validation."""
    lines = ["Please fix the following errors before submitting:"]
    for name, message in errors.items():
        if message:
            lines.append(f"- {labels.get(name, name)}: {message}")
    return "\n".join(lines)


def first_invalid(errors: Mapping[str, str], field_order: Iterable[str]) -> Optional[str]:
    """Field that should receive focus after a failed submit."""
    for name in field_order:
        if errors.get(name):
            return name
    for name, message in errors.items():
        if message:
            return name
    return None


def clean(errors: Dict[str, str]) -> Dict[str, str]:
    return {name: message for name, message in errors.items() if message}
