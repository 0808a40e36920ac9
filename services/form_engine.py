# services/form_engine.py

"""
Server-side form engine for jurisdiction permit applications.

A template's schema is a list of sections, each holding fields. The
clients render one section at a time and use the same rules to decide
which fields are visible and whether a section may be left; the API
re-checks everything when a submission is marked SUBMITTED.

Rules:
- A field with `conditionalOn` is visible only while the referenced
  field holds exactly the given value. Hidden fields are never validated.
- Required fields reject missing values, None, "", False and empty lists.
- Present values are checked against the field type and its
  `validation` block (`message` overrides the generated text).
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from models.enums import FormFieldType
from models.form import FormSchema, FormFieldDef


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CHOICE_TYPES = (FormFieldType.SELECT, FormFieldType.RADIO)


class InvalidFormSchema(ValueError):
    pass


# ============================================================
# Schema parsing
# ============================================================
def parse_schema(raw: Any) -> FormSchema:
    """
    Parse and sanity-check a stored schema.

    Raises InvalidFormSchema for unparseable schemas, duplicate field ids,
    choice fields without options, invalid regex patterns and conditions pointing at unknown fields.
    """
    if not isinstance(raw, dict):
        raise InvalidFormSchema("Form schema must be an object with sections")

    try:
        schema = FormSchema.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(p) for p in first["loc"])
        raise InvalidFormSchema(f"Invalid form schema at {location}: {first['msg']}")

    seen = set()
    for section in schema.sections:
        for field in section.fields:
            if field.id in seen:
                raise InvalidFormSchema(f"Duplicate field id '{field.id}'")
            seen.add(field.id)
            if field.type in CHOICE_TYPES + (FormFieldType.MULTI_SELECT,) and not field.options:
                raise InvalidFormSchema(f"Field '{field.id}' needs options")
            if field.validation and field.validation.pattern:
                try:
                    re.compile(field.validation.pattern)
                except re.error as e:
                    raise InvalidFormSchema(f"Field '{field.id}' has an invalid pattern: {e}")

    for section in schema.sections:
        for field in section.fields:
            if field.conditional_on and field.conditional_on.field_id not in seen:
                raise InvalidFormSchema(
                    f"Field '{field.id}' depends on unknown field '{field.conditional_on.field_id}'"
                )

    return schema


def iter_fields(schema: FormSchema):
    for section in schema.sections:
        for field in section.fields:
            yield field


def default_values(schema: FormSchema) -> Dict[str, Any]:
    return {
        f.id: f.default_value
        for f in iter_fields(schema)
        if f.default_value is not None
    }


# ============================================================
# Visibility
# ============================================================
def is_field_visible(field: FormFieldDef, data: Dict[str, Any]) -> bool:
    if not field.conditional_on:
        return True
    return data.get(field.conditional_on.field_id) == field.conditional_on.value


def is_empty(value: Any) -> bool:
    return value is None or value == "" or value is False or value == []


# ============================================================
# Field validation
# ============================================================
def validate_field(field: FormFieldDef, value: Any) -> Optional[str]:
    """Error message for one visible field, or None."""
    if is_empty(value):
        return f"{field.label} is required" if field.required else None

    rules = field.validation
    custom = rules.message if rules and rules.message else None

    def fail(default: str) -> str:
        return custom or default

    if field.type == FormFieldType.NUMBER:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return fail(f"{field.label} must be a number")
        if rules and rules.min is not None and number < rules.min:
            return fail(f"{field.label} must be at least {rules.min:g}")
        if rules and rules.max is not None and number > rules.max:
            return fail(f"{field.label} must be at most {rules.max:g}")
        return None

    if field.type == FormFieldType.EMAIL and not EMAIL_RE.match(str(value)):
        return fail(f"{field.label} must be a valid email address")

    if field.type in CHOICE_TYPES and field.options:
        allowed = {o.value for o in field.options}
        if str(value) not in allowed:
            return fail(f"{field.label} has an invalid selection")

    if field.type == FormFieldType.MULTI_SELECT and field.options:
        allowed = {o.value for o in field.options}
        values = value if isinstance(value, list) else [value]
        if any(str(v) not in allowed for v in values):
            return fail(f"{field.label} has an invalid selection")

    if isinstance(value, str) and rules:
        if rules.min_length is not None and len(value) < rules.min_length:
            return fail(f"{field.label} must be at least {rules.min_length} characters")
        if rules.max_length is not None and len(value) > rules.max_length:
            return fail(f"{field.label} must be at most {rules.max_length} characters")
        if rules.pattern and not re.fullmatch(rules.pattern, value):
            return fail(f"{field.label} is invalid")

    return None


def validate_section(schema: FormSchema, section_index: int, data: Dict[str, Any]) -> Dict[str, str]:
    """Errors keyed by field id for one section (hidden fields skipped)."""
    section = schema.sections[section_index]
    errors: Dict[str, str] = {}
    for field in section.fields:
        if not is_field_visible(field, data):
            continue
        message = validate_field(field, data.get(field.id))
        if message:
            errors[field.id] = message
    return errors


def validate_all(schema: FormSchema, data: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for index in range(len(schema.sections)):
        errors.update(validate_section(schema, index, data))
    return errors


def first_invalid_section(schema: FormSchema, data: Dict[str, Any]) -> Optional[int]:
    """Index of the first section with errors (where the client should jump), or None."""
    for index in range(len(schema.sections)):
        if validate_section(schema, index, data):
            return index
    return None


def visible_fields(schema: FormSchema, data: Dict[str, Any]) -> List[tuple]:
    """(section, [visible fields]) pairs, for rendering."""
    return [
        (section, [f for f in section.fields if is_field_visible(f, data)])
        for section in schema.sections
    ]
