"""Single-condition evaluation against a meeting's normalized attributes.

Pure functions.  Every field/operator pairing the models accept is handled here;
anything else evaluates to False rather than raising.
"""

from __future__ import annotations

from meetq.storage.models import Condition, ConditionField, ConditionOperator, Meeting


def _as_list(value: str | list[str]) -> list[str]:
    return [value] if isinstance(value, str) else list(value)


def evaluate_text_condition(
    text: str | None, operator: ConditionOperator, value: str | list[str]
) -> bool:
    """Case-insensitive text test; a missing field never matches."""
    if not text:
        return False
    lower_text = text.lower()

    if operator is ConditionOperator.CONTAINS_ANY:
        return any(v.lower() in lower_text for v in _as_list(value))

    if not isinstance(value, str):
        return False
    needle = value.lower()

    if operator is ConditionOperator.CONTAINS:
        return needle in lower_text
    if operator is ConditionOperator.EQUALS:
        return lower_text == needle
    if operator is ConditionOperator.STARTS_WITH:
        return lower_text.startswith(needle)
    return False


def evaluate_condition(
    condition: Condition, meeting: Meeting, attendee_domains: list[str]
) -> bool:
    """
    Evaluate one condition.

    Args:
        condition: Field/operator/value test
        meeting: Meeting being classified
        attendee_domains: Lowercase unique domains of all attendees

    Returns:
        True when the condition holds; False for missing fields and for any
        field/operator pairing this evaluator does not know.
    """
    field = condition.field
    operator = condition.operator
    value = condition.value

    if field is ConditionField.TITLE:
        return evaluate_text_condition(meeting.title, operator, value)

    if field is ConditionField.DESCRIPTION:
        return evaluate_text_condition(meeting.description, operator, value)

    if field is ConditionField.ATTENDEE_DOMAINS:
        if operator in (ConditionOperator.INTERSECTS, ConditionOperator.CONTAINS):
            wanted = {v.lower() for v in _as_list(value)}
            return any(domain in wanted for domain in attendee_domains)
        return False

    if field is ConditionField.ALL_ATTENDEES_DOMAIN:
        if operator is ConditionOperator.EQUALS and isinstance(value, str):
            target = value.lower().lstrip("@")
            return bool(attendee_domains) and all(d == target for d in attendee_domains)
        return False

    if field is ConditionField.ORGANIZER:
        if not meeting.organizer or not isinstance(value, str):
            return False
        organizer = meeting.organizer.lower()
        if operator is ConditionOperator.EQUALS:
            return organizer == value.lower()
        if operator is ConditionOperator.ENDS_WITH:
            return organizer.endswith(value.lower())
        return False

    return False
