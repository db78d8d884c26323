# ============================================================================
# Lead Management Service
# ============================================================================
from typing import Any, Dict, Optional
from datetime import datetime, date, time, timezone
from uuid import UUID
import logging

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFound, InvalidRequest
from portal.models.lead import Lead, LeadStatus
from portal.utils.csv_io import rows_to_csv
from portal.utils.pagination import paginated

logger = logging.getLogger(__name__)

EXPORT_HEADERS = (
    "name", "email", "country", "class_name", "phone_number", "status",
    "update_count", "form_name", "source", "prepared", "created_at", "updated_at"
)

def lead_to_dict(lead: Lead) -> Dict[str, Any]:
    return {
        "id": str(lead.id),
        "name": lead.name,
        "email": lead.email,
        "country": lead.country,
        "class_name": lead.class_name,
        "phone_number": lead.phone_number,
        "status": lead.status.value,
        "update_count": lead.update_count,
        "form_name": lead.form_name,
        "source": lead.source,
        "prepared": lead.prepared,
        "created_at": lead.created_at.isoformat() if lead.created_at else None,
        "updated_at": lead.updated_at.isoformat() if lead.updated_at else None,
    }

class LeadService:
    """Lead capture (upsert by email) and lead administration"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, lead_id: UUID) -> Lead:
        lead = await self.db.get(Lead, lead_id)
        if not lead:
            raise NotFound("Lead", str(lead_id))
        return lead

    async def get_by_email(self, email: str) -> Optional[Lead]:
        result = await self.db.execute(select(Lead).where(Lead.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def upsert_lead(self, data: Dict[str, Any], commit: bool = True) -> Dict[str, Any]:
        """
        Create a lead, or refresh the existing lead with the same email.

        An existing lead is marked ``updated`` and its ``update_count``
        incremented. Returns the lead plus ``is_updated`` and
        ``previous_status``.
        """
        email = data["email"].strip().lower()
        lead = await self.get_by_email(email)
        previous_status = None

        if lead:
            previous_status = lead.status.value
            for field in ("name", "country", "class_name", "phone_number"):
                setattr(lead, field, data[field].strip())
            for field in ("form_name", "source", "prepared"):
                if data.get(field):
                    setattr(lead, field, data[field])
            lead.status = LeadStatus.UPDATED
            lead.update_count = (lead.update_count or 0) + 1
            message = f"Lead updated successfully. This is update #{lead.update_count}."
        else:
            lead = Lead(
                name=data["name"].strip(),
                email=email,
                country=data["country"].strip(),
                class_name=data["class_name"].strip(),
                phone_number=data["phone_number"].strip(),
                form_name=data.get("form_name"),
                source=data.get("source"),
                prepared=data.get("prepared"),
                status=LeadStatus.NEW,
                update_count=0
            )
            self.db.add(lead)
            message = "Lead submitted successfully"

        if commit:
            await self.db.commit()
            await self.db.refresh(lead)
        else:
            await self.db.flush()

        logger.info(f"📇 Lead {'updated' if previous_status else 'captured'}: {email}")
        return {
            "lead": lead,
            "message": message,
            "is_updated": previous_status is not None,
            "previous_status": previous_status,
        }

    def _filters(self, filters: Dict[str, Any]):
        conditions = []
        if filters.get("country"):
            conditions.append(Lead.country.ilike(f"%{filters['country']}%"))
        if filters.get("class_name"):
            conditions.append(Lead.class_name.ilike(f"%{filters['class_name']}%"))
        status = filters.get("status")
        if status and status.lower() != "all":
            try:
                conditions.append(Lead.status == LeadStatus(status.lower()))
            except ValueError:
                raise InvalidRequest(f"Unknown lead status: {status}")
        search = (filters.get("search") or "").strip()
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                Lead.name.ilike(pattern),
                Lead.email.ilike(pattern),
                Lead.phone_number.ilike(pattern)
            ))
        date_from: Optional[date] = filters.get("date_from")
        if date_from:
            conditions.append(Lead.created_at >= datetime.combine(date_from, time.min, tzinfo=timezone.utc))
        date_to: Optional[date] = filters.get("date_to")
        if date_to:
            # inclusive: up to the last microsecond of that day
            conditions.append(Lead.created_at <= datetime.combine(date_to, time.max, tzinfo=timezone.utc))
        return conditions

    async def list_leads(
        self,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        page_size: int = 10
    ) -> Dict[str, Any]:
        conditions = self._filters(filters or {})
        total = (await self.db.execute(select(func.count(Lead.id)).where(*conditions))).scalar() or 0
        result = await self.db.execute(
            select(Lead).where(*conditions)
            .order_by(Lead.created_at.desc())
            .offset((page - 1) * page_size).limit(page_size)
        )
        return paginated([lead_to_dict(l) for l in result.scalars().all()], total, page, page_size)

    async def get_lead(self, lead_id: UUID) -> Dict[str, Any]:
        return lead_to_dict(await self._get(lead_id))

    async def update_status(self, lead_id: UUID, status: LeadStatus) -> Dict[str, Any]:
        lead = await self._get(lead_id)
        lead.status = status
        await self.db.commit()
        await self.db.refresh(lead)
        logger.info(f"📇 Lead {lead.email} -> {status.value}")
        return lead_to_dict(lead)

    async def delete_lead(self, lead_id: UUID) -> Dict[str, Any]:
        lead = await self._get(lead_id)
        await self.db.delete(lead)
        await self.db.commit()
        logger.info(f"🗑️ Deleted lead {lead.email}")
        return {"message": "Lead deleted successfully"}

    async def export_leads(self, filters: Optional[Dict[str, Any]] = None) -> str:
        """All leads matching ``filters`` as CSV text"""
        conditions = self._filters(filters or {})
        result = await self.db.execute(select(Lead).where(*conditions).order_by(Lead.created_at.desc()))
        rows = [lead_to_dict(l) for l in result.scalars().all()]
        return rows_to_csv(rows, EXPORT_HEADERS)
