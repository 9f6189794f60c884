from typing import Any, Dict, List
import re

from slotbook.services.schedule_rules import parse_clock

POLICY_KEYS = {
    "min_lead_minutes": 0,
    "max_advance_days": 1,
    "cancellation_limit_hours": 0,
}


def validate_phone_number(phone: str) -> bool:
    """Validate phone number format (international or local)."""
    if not phone:
        return True  # Allow empty/null

    phone_pattern = r'^[\+]?[0-9][\d\-\s\(\)\.]{6,18}$'
    return bool(re.match(phone_pattern, phone.strip()))


def validate_business_policy(policy: Dict[str, Any]) -> List[str]:
    """Validate booking policy overrides of a business."""
    errors = []

    if not policy:
        return errors

    for key in policy:
        if key not in POLICY_KEYS:
            errors.append(f"Unknown policy setting '{key}'")

    for key, minimum in POLICY_KEYS.items():
        value = policy.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            errors.append(f"{key} must be an integer >= {minimum}")

    return errors


def validate_day_slots(day: str, slots: List[Dict[str, str]]) -> List[str]:
    """Validate the working intervals of one weekday.

    Each interval needs start < end and intervals must not overlap. "24:00"
    is accepted as the end of the day.
    """
    errors = []
    parsed = []

    for slot in slots:
        try:
            start = parse_clock(slot["start"])
            end = parse_clock(slot["end"])
        except (KeyError, ValueError) as e:
            errors.append(f"{day}: {e}")
            continue

        if start >= end:
            errors.append(f"{day}: start {slot['start']} must be before end {slot['end']}")
            continue
        parsed.append((start, end, slot))

    parsed.sort(key=lambda item: item[0])
    for (_, prev_end, prev), (start, _, current) in zip(parsed, parsed[1:]):
        if start < prev_end:
            errors.append(
                f"{day}: {prev['start']}-{prev['end']} overlaps "
                f"{current['start']}-{current['end']}"
            )

    return errors
