# ============================================================================
# Lead & Form Endpoints
# ============================================================================
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import Pagination, get_current_staff, require_write_access
from portal.core.database import get_db
from portal.models.user import User
from portal.schemas.lead import LeadCreate, LeadStatusUpdate, FormCreate, FormUpdate, FormSubmission
from portal.services.form_service import FormService
from portal.services.lead_service import LeadService, lead_to_dict

router = APIRouter(prefix="/leads", tags=["leads"])
forms_router = APIRouter(prefix="/forms", tags=["forms"])

# ============================================================================
# Leads
# ============================================================================
@router.post("")
async def submit_lead(payload: LeadCreate, db: AsyncSession = Depends(get_db)):
    """
    Public lead capture.

    A repeat email refreshes the existing lead (200); a new email creates
    one (201).
    """
    result = await LeadService(db).upsert_lead(payload.model_dump())
    body = {
        "message": result["message"],
        "lead": lead_to_dict(result["lead"]),
        "is_updated": result["is_updated"],
        "previous_status": result["previous_status"],
    }
    code = status.HTTP_200_OK if result["is_updated"] else status.HTTP_201_CREATED
    return JSONResponse(status_code=code, content=body)

@router.get("")
async def list_leads(
    country: Optional[str] = None,
    class_name: Optional[str] = None,
    status: Optional[str] = Query(None, description="Lead status or 'all'"),
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    pagination: Pagination = Depends(),
    user: User = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    filters = {
        "country": country, "class_name": class_name, "status": status,
        "search": search, "date_from": date_from, "date_to": date_to,
    }
    return await LeadService(db).list_leads(filters, page=pagination.page, page_size=pagination.page_size)

@router.get("/export")
async def export_leads(
    country: Optional[str] = None,
    class_name: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    user: User = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    filters = {
        "country": country, "class_name": class_name, "status": status,
        "search": search, "date_from": date_from, "date_to": date_to,
    }
    content = await LeadService(db).export_leads(filters)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="leads_export_{timestamp}.csv"'}
    )

@router.get("/{lead_id}")
async def get_lead(
    lead_id: UUID,
    user: User = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    return await LeadService(db).get_lead(lead_id)

@router.patch("/{lead_id}/status")
async def update_lead_status(
    lead_id: UUID,
    payload: LeadStatusUpdate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await LeadService(db).update_status(lead_id, payload.status)

@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: UUID,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await LeadService(db).delete_lead(lead_id)

# ============================================================================
# Forms
# ============================================================================
@forms_router.get("")
async def list_forms(
    status: Optional[str] = None,
    search: Optional[str] = None,
    pagination: Pagination = Depends(),
    user: User = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    return await FormService(db).list_forms(
        status=status, search=search, page=pagination.page, page_size=pagination.page_size
    )

@forms_router.post("", status_code=status.HTTP_201_CREATED)
async def create_form(
    payload: FormCreate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await FormService(db).create_form(payload.model_dump())

@forms_router.get("/{form_id}")
async def get_form(
    form_id: str,
    user: User = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    return await FormService(db).get_form(form_id)

@forms_router.put("/{form_id}")
async def update_form(
    form_id: str,
    payload: FormUpdate,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await FormService(db).update_form(form_id, payload.model_dump(exclude_unset=True))

@forms_router.delete("/{form_id}")
async def delete_form(
    form_id: str,
    user: User = Depends(require_write_access),
    db: AsyncSession = Depends(get_db)
):
    return await FormService(db).delete_form(form_id)

@forms_router.get("/{form_id}/public")
async def get_public_form(form_id: str, db: AsyncSession = Depends(get_db)):
    """Active form definition for rendering on the public site"""
    return await FormService(db).get_public_form(form_id)

@forms_router.post("/{form_id}/submit")
async def submit_form(form_id: str, payload: FormSubmission, db: AsyncSession = Depends(get_db)):
    return await FormService(db).submit_form(form_id, payload.values)
