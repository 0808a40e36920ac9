# models/form.py

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, model_validator

from models.enums import FormFieldType, FormSubmissionStatus, SubcodeType


# -------------------------------------------------
# Form schema (JSON stored on form_templates.schema)
# -------------------------------------------------
class FieldOption(BaseModel):
    label: str
    value: str


class FieldValidation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    min: Optional[float] = None
    max: Optional[float] = None
    min_length: Optional[int] = Field(None, alias="minLength")
    max_length: Optional[int] = Field(None, alias="maxLength")
    pattern: Optional[str] = None
    message: Optional[str] = None


class ConditionalOn(BaseModel):
    """Show the field only while `field_id` holds `value`."""
    model_config = ConfigDict(populate_by_name=True)

    field_id: str = Field(..., alias="fieldId")
    value: Union[bool, int, float, str, None] = None

    @model_validator(mode="before")
    @classmethod
    def accept_field_alias(cls, data):
        # Older templates use `field` instead of `fieldId`
        if isinstance(data, dict) and "fieldId" not in data and "field_id" not in data and "field" in data:
            data = dict(data)
            data["fieldId"] = data.pop("field")
        return data


class FormFieldDef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    type: FormFieldType
    label: str
    placeholder: Optional[str] = None
    required: bool = False
    options: Optional[List[FieldOption]] = None
    validation: Optional[FieldValidation] = None
    conditional_on: Optional[ConditionalOn] = Field(None, alias="conditionalOn")
    default_value: Any = Field(None, alias="defaultValue")
    help_text: Optional[str] = Field(None, alias="helpText")


class FormSection(BaseModel):
    id: str = Field(..., min_length=1)
    title: str
    description: Optional[str] = None
    fields: List[FormFieldDef] = Field(..., min_length=1)


class FormSchema(BaseModel):
    sections: List[FormSection] = Field(..., min_length=1)


# -------------------------------------------------
# Templates
# -------------------------------------------------
class FormTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Template name is required")
    description: Optional[str] = None
    subcode_type: SubcodeType
    jurisdiction_id: Optional[str] = None
    schema_: Dict[str, Any] = Field(..., alias="schema")
    ui_schema: Optional[Dict[str, Any]] = None
    default_values: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True)


class FormTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    subcode_type: Optional[SubcodeType] = None
    jurisdiction_id: Optional[str] = None
    schema_: Optional[Dict[str, Any]] = Field(None, alias="schema")
    ui_schema: Optional[Dict[str, Any]] = None
    default_values: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)


# -------------------------------------------------
# Submissions
# -------------------------------------------------
class FormSubmissionCreate(BaseModel):
    template_id: str = Field(..., min_length=1, description="Form template is required")
    data: Dict[str, Any] = {}
    status: FormSubmissionStatus = FormSubmissionStatus.DRAFT


class FormSubmissionUpdate(BaseModel):
    data: Optional[Dict[str, Any]] = None
    status: Optional[FormSubmissionStatus] = None
