# ============================================================================
# Lead-Capture Form Service
# ============================================================================
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging
import re

from email_validator import validate_email, EmailNotValidError
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFound, Conflict, InvalidRequest
from portal.models.lead import Form
from portal.services.lead_service import LeadService
from portal.utils.pagination import paginated

logger = logging.getLogger(__name__)

def is_valid_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True

# Form field names accepted for each lead column
LEAD_FIELD_ALIASES = {
    "name": ("name", "fullName", "full_name"),
    "email": ("email",),
    "country": ("country",),
    "class_name": ("class_name", "className", "class"),
    "phone_number": ("phone_number", "phoneNumber", "phone"),
    "prepared": ("prepared", "exam"),
}

def form_to_dict(form: Form) -> Dict[str, Any]:
    return {
        "id": str(form.id),
        "form_id": form.form_id,
        "form_name": form.form_name,
        "description": form.description or "",
        "fields": sorted(form.fields or [], key=lambda f: f.get("order", 0)),
        "settings": form.settings or {},
        "status": form.status,
        "submission_count": form.submission_count,
        "created_at": form.created_at.isoformat() if form.created_at else None,
        "updated_at": form.updated_at.isoformat() if form.updated_at else None,
    }

def validate_field(field: Dict[str, Any], value: Optional[str]) -> Optional[str]:
    """Return an error message for ``value`` or None when it is acceptable."""
    label = field.get("label") or field.get("name")
    value = "" if value is None else str(value).strip()

    if field.get("required") and not value:
        return f"{label} is required"
    if not value:
        return None

    rules = field.get("validation") or {}
    message = rules.get("message")
    if rules.get("min_length") and len(value) < rules["min_length"]:
        return message or f"{label} must be at least {rules['min_length']} characters"
    if rules.get("max_length") and len(value) > rules["max_length"]:
        return message or f"{label} must be less than {rules['max_length']} characters"
    if rules.get("pattern") and not re.search(rules["pattern"], value):
        return message or f"{label} is invalid"

    if field.get("type") == "email" and not is_valid_email(value):
        return "Please enter a valid email address"
    if field.get("type") == "number":
        try:
            float(value)
        except ValueError:
            return f"{label} must be a number"
    if field.get("type") == "select" and field.get("options") and value not in field["options"]:
        return f"{label} must be one of the listed options"
    return None

class FormService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, form_id: str) -> Form:
        result = await self.db.execute(select(Form).where(Form.form_id == form_id.strip().lower()))
        form = result.scalar_one_or_none()
        if not form:
            raise NotFound("Form", form_id)
        return form

    async def list_forms(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10
    ) -> Dict[str, Any]:
        conditions = []
        if status and status.lower() != "all":
            conditions.append(Form.status == status.lower())
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            conditions.append(or_(Form.form_name.ilike(pattern), Form.form_id.ilike(pattern)))

        total = (await self.db.execute(select(func.count(Form.id)).where(*conditions))).scalar() or 0
        result = await self.db.execute(
            select(Form).where(*conditions)
            .order_by(Form.created_at.desc())
            .offset((page - 1) * page_size).limit(page_size)
        )
        return paginated([form_to_dict(f) for f in result.scalars().all()], total, page, page_size)

    async def get_form(self, form_id: str) -> Dict[str, Any]:
        return form_to_dict(await self._get(form_id))

    async def get_public_form(self, form_id: str) -> Dict[str, Any]:
        form = await self._get(form_id)
        if form.status != "active":
            raise NotFound("Form", form_id)
        data = form_to_dict(form)
        data.pop("submission_count")
        return data

    async def create_form(self, data: Dict[str, Any]) -> Dict[str, Any]:
        existing = await self.db.execute(select(Form.id).where(Form.form_id == data["form_id"]))
        if existing.scalar() is not None:
            raise Conflict(f"Form with ID '{data['form_id']}' already exists")

        self._check_field_names(data.get("fields") or [])
        form = Form(
            form_id=data["form_id"],
            form_name=data["form_name"].strip(),
            description=data.get("description") or "",
            fields=data.get("fields") or [],
            settings=data.get("settings") or {},
            status=data.get("status") or "active",
            submission_count=0
        )
        self.db.add(form)
        await self.db.commit()
        await self.db.refresh(form)

        logger.info(f"✅ Created form: {form.form_id}")
        return form_to_dict(form)

    async def update_form(self, form_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        form = await self._get(form_id)
        if updates.get("fields") is not None:
            self._check_field_names(updates["fields"])
        for field, value in updates.items():
            if value is not None:
                # JSON columns are reassigned so the change is tracked
                setattr(form, field, value)
        await self.db.commit()
        await self.db.refresh(form)
        return form_to_dict(form)

    async def delete_form(self, form_id: str) -> Dict[str, Any]:
        form = await self._get(form_id)
        await self.db.delete(form)
        await self.db.commit()
        logger.info(f"🗑️ Deleted form: {form_id}")
        return {"message": "Form deleted successfully"}

    @staticmethod
    def _check_field_names(fields: List[Dict[str, Any]]) -> None:
        names = [f["name"] for f in fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InvalidRequest(f"Duplicate field names: {', '.join(duplicates)}")

    async def submit_form(self, form_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a public submission against the form's field rules and
        record it as a lead.
        """
        form = await self._get(form_id)
        if form.status != "active":
            raise NotFound("Form", form_id)

        errors = {}
        for field in form.fields or []:
            error = validate_field(field, values.get(field["name"]))
            if error:
                errors[field["name"]] = error
        if errors:
            raise InvalidRequest("; ".join(errors.values()), error_code="VALIDATION_FAILED")

        lead_data: Dict[str, Any] = {"form_name": form.form_name, "source": "form"}
        for column, aliases in LEAD_FIELD_ALIASES.items():
            for alias in aliases:
                if values.get(alias):
                    lead_data[column] = str(values[alias]).strip()
                    break

        missing = [c for c in ("name", "email", "country", "class_name", "phone_number") if not lead_data.get(c)]
        if missing:
            raise InvalidRequest(f"Missing lead details: {', '.join(missing)}", error_code="VALIDATION_FAILED")
        if not is_valid_email(lead_data["email"]):
            raise InvalidRequest("Please enter a valid email address", error_code="VALIDATION_FAILED")

        result = await LeadService(self.db).upsert_lead(lead_data, commit=False)
        form.submission_count = (form.submission_count or 0) + 1
        await self.db.commit()

        logger.info(f"📨 Form {form.form_id} submission #{form.submission_count}")
        return {
            "message": (form.settings or {}).get("success_message")
            or "Thank you! Your request has been submitted successfully.",
            "lead_id": str(result["lead"].id),
            "is_updated": result["is_updated"],
        }
