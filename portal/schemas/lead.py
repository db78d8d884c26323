# ============================================================================
# Lead & Form Schemas
# ============================================================================
import re
from pydantic import BaseModel, Field, EmailStr, field_validator
from typing import Optional, List, Literal

from portal.models.lead import LeadStatus

FORM_ID_PATTERN = re.compile(r"^[a-z0-9-]+$")

def _required_text(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("must not be blank")
    return v

class LeadCreate(BaseModel):
    name: str = Field(..., max_length=200)
    email: EmailStr
    country: str = Field(..., max_length=100)
    class_name: str = Field(..., max_length=100)
    phone_number: str = Field(..., max_length=30)
    form_name: Optional[str] = None
    source: Optional[str] = None
    prepared: Optional[str] = None

    @field_validator("name", "country", "class_name", "phone_number")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _required_text(v)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()

class LeadStatusUpdate(BaseModel):
    status: LeadStatus

# ============================================================================
# Forms
# ============================================================================
FieldType = Literal["text", "email", "tel", "select", "textarea", "number"]

class FieldValidation(BaseModel):
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=1)
    pattern: Optional[str] = None
    message: Optional[str] = None

    @field_validator("pattern")
    @classmethod
    def check_pattern(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid pattern: {e}")
        return v

class FormField(BaseModel):
    field_id: Optional[str] = None
    type: FieldType
    label: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    placeholder: Optional[str] = None
    required: bool = False
    validation: Optional[FieldValidation] = None
    options: List[str] = []
    default_value: Optional[str] = None
    order: int = 0

class FormSettings(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    button_text: str = "Submit"
    success_message: str = "Thank you! Your request has been submitted successfully."
    modal: bool = True
    show_verification: bool = True

class FormCreate(BaseModel):
    form_id: str = Field(..., min_length=1, max_length=100)
    form_name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    fields: List[FormField] = []
    settings: FormSettings = FormSettings()
    status: Literal["active", "inactive"] = "active"

    @field_validator("form_id")
    @classmethod
    def check_form_id(cls, v: str) -> str:
        v = v.strip().lower()
        if not FORM_ID_PATTERN.match(v):
            raise ValueError("Form ID can only contain lowercase letters, numbers, and hyphens")
        return v

class FormUpdate(BaseModel):
    form_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    fields: Optional[List[FormField]] = None
    settings: Optional[FormSettings] = None
    status: Optional[Literal["active", "inactive"]] = None

class FormSubmission(BaseModel):
    values: dict = Field(default_factory=dict)
