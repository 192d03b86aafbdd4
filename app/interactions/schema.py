# FILE: app/interactions/schema.py
"""
Interaction record schema and a shallow validator.

"required": False means the field can be omitted when writing.
Type checks are shallow: a value must match one of the allowed type names,
and array items are checked against "item_type" when given. Nested objects
are not inspected.
"""

from typing import Any, Dict, List


# ---- Schema definition ----
INTERACTION_SCHEMA: Dict[str, Dict[str, Any]] = {
    "id": {"type": "string", "required": True},
    "model_used": {"type": "string", "required": True},
    "course_id": {"type": "string", "required": True},
    "assignment_id": {"type": "string", "required": True},
    # str | list[object]
    "context_without_textbook": {"type": ["string", "array"], "item_type": "object", "required": True},
    "student_request": {"type": "string", "required": True},
    # str | None, may be omitted (needs regeneration)
    "response_with_textbook": {"type": ["string", "null"], "required": False},
    "response_without_textbook": {"type": ["string", "null"], "required": False},
    "timestamp": {"type": "number", "required": True},
    # irreversible keyed hash, see pseudonym.py
    "student_id": {"type": "string", "required": True},
}

# ---- Key mapping ----
# pk: partition key; hk/uk reserved (not enforced by the store today)
INTERACTION_KEYS: Dict[str, Any] = {
    "pk": "student_id",
    "hk": None,
    "uk": None,
}


class ValidationError(Exception):
    """Interaction record failed schema validation."""

    def __init__(self, details: List[str]):
        self.details = details
        super().__init__(f"Schema validation failed: {'; '.join(details)}")


def type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def validate_against_schema(
    schema: Dict[str, Dict[str, Any]],
    data: Dict[str, Any],
    allow_partial: bool = False,
) -> None:
    """
    Raise ValidationError listing every problem with `data`.

    allow_partial=True only checks the fields that are present.
    """
    errors: List[str] = []

    for field_name, rules in schema.items():
        if field_name not in data:
            if rules.get("required") and not allow_partial:
                errors.append(f"Missing required field '{field_name}'")
            continue

        value = data[field_name]
        allowed = rules["type"] if isinstance(rules["type"], list) else [rules["type"]]
        actual = type_name(value)

        if actual not in allowed:
            errors.append(f"Field '{field_name}' has type '{actual}', expected one of {', '.join(allowed)}")
            continue

        item_type = rules.get("item_type")
        if actual == "array" and item_type:
            for idx, item in enumerate(value):
                if type_name(item) != item_type:
                    errors.append(
                        f"Field '{field_name}'[{idx}] has type '{type_name(item)}', expected '{item_type}'"
                    )

    if errors:
        raise ValidationError(errors)
