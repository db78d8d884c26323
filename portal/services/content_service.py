# ============================================================================
# Content Management Service
# ============================================================================
"""
CRUD, ordering and page details for every level of the content hierarchy.
One ``ContentService`` instance serves one level.
"""
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import get_settings
from portal.core.exceptions import NotFound, Conflict, InvalidRequest
from portal.core.redis import cache
from portal.models.curriculum import ContentDetails
from portal.services.practice_service import PRACTICE_CACHE_PREFIX
from portal.services.hierarchy import (
    HierarchyService, MODELS, LABELS, check_level, parent_field, ancestor_fields
)
from portal.utils.text import create_slug, unique_slug, to_title_case
from portal.utils.pagination import paginated

settings = get_settings()
logger = logging.getLogger(__name__)

TREE_CACHE_PREFIX = "tree:"
BROWSE_CACHE_PREFIX = "browse:"

# Extra columns some levels carry on top of name/order/status
LEVEL_FIELDS = {
    "chapter": ("weightage", "time", "questions"),
}

def normalise_name(level: str, name: str) -> str:
    """Exam names are upper-cased, every other level is title-cased."""
    name = " ".join(name.split())
    return name.upper() if level == "exam" else to_title_case(name)

async def invalidate_content_cache(practice: bool = False) -> None:
    await cache.invalidate(TREE_CACHE_PREFIX)
    await cache.invalidate(BROWSE_CACHE_PREFIX)
    if practice:
        await cache.invalidate(PRACTICE_CACHE_PREFIX)

def node_to_dict(level: str, node, details: Optional[ContentDetails] = None) -> Dict[str, Any]:
    data = {
        "id": str(node.id),
        "level": level,
        "name": node.name,
        "slug": node.slug,
        "order_number": node.order_number,
        "status": node.status,
        "created_at": node.created_at.isoformat() if node.created_at else None,
        "updated_at": node.updated_at.isoformat() if node.updated_at else None,
    }
    for field in ancestor_fields(level):
        data[field] = str(getattr(node, field))
    for field in LEVEL_FIELDS.get(level, ()):
        data[field] = getattr(node, field)
    data["content_info"] = {
        "has_content": bool(details and details.has_content),
        "content_date": (
            (details.updated_at or details.created_at).isoformat()
            if details and (details.updated_at or details.created_at) else None
        ),
    }
    return data

def details_to_dict(level: str, node_id: UUID, details: Optional[ContentDetails]) -> Dict[str, Any]:
    if not details:
        return {
            "entity_type": level,
            "entity_id": str(node_id),
            "content": "",
            "title": "",
            "meta_description": "",
            "keywords": "",
            "status": "draft",
            "exists": False,
            "updated_at": None,
        }
    return {
        "entity_type": details.entity_type,
        "entity_id": str(details.entity_id),
        "content": details.content or "",
        "title": details.title or "",
        "meta_description": details.meta_description or "",
        "keywords": details.keywords or "",
        "status": details.status,
        "exists": True,
        "updated_at": (details.updated_at or details.created_at).isoformat()
        if (details.updated_at or details.created_at) else None,
    }

class ContentService:
    """Service for managing one level of the content hierarchy"""

    def __init__(self, db: AsyncSession, level: str):
        self.db = db
        self.level = check_level(level)
        self.model = MODELS[level]
        self.label = LABELS[level]
        self.parent_field = parent_field(level)
        self.hierarchy = HierarchyService(db)

    # ========================================================================
    # Queries
    # ========================================================================
    def _sibling_filter(self, parent_id: Optional[UUID]):
        if self.parent_field is None:
            return []
        return [getattr(self.model, self.parent_field) == parent_id]

    async def _details_for(self, ids: List[UUID]) -> Dict[UUID, ContentDetails]:
        if not ids:
            return {}
        result = await self.db.execute(
            select(ContentDetails).where(
                ContentDetails.entity_type == self.level,
                ContentDetails.entity_id.in_(ids)
            )
        )
        return {d.entity_id: d for d in result.scalars().all()}

    async def list_nodes(
        self,
        filters: Optional[Dict[str, UUID]] = None,
        status: Optional[str] = "active",
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10
    ) -> Dict[str, Any]:
        """List nodes with ancestor/status/search filtering and pagination"""
        query = select(self.model)
        count_query = select(func.count(self.model.id))

        conditions = []
        allowed = set(ancestor_fields(self.level))
        for field, value in (filters or {}).items():
            if value is None:
                continue
            if field not in allowed:
                raise InvalidRequest(f"{self.label} cannot be filtered by {field}")
            conditions.append(getattr(self.model, field) == value)

        if status and status.lower() != "all":
            conditions.append(func.lower(self.model.status) == status.lower())
        if search and search.strip():
            conditions.append(self.model.name.ilike(f"%{search.strip()}%"))

        for condition in conditions:
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(self.model.order_number.asc(), self.model.created_at.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        nodes = (await self.db.execute(query)).scalars().all()

        details = await self._details_for([n.id for n in nodes])
        items = [node_to_dict(self.level, n, details.get(n.id)) for n in nodes]
        return paginated(items, total, page, page_size)

    async def get_node(self, node_id: UUID) -> Dict[str, Any]:
        node = await self.hierarchy.get_node(self.level, node_id)
        details = await self._details_for([node.id])
        return node_to_dict(self.level, node, details.get(node.id))

    # ========================================================================
    # Uniqueness helpers
    # ========================================================================
    async def _name_taken(self, name: str, parent_id: Optional[UUID], exclude_id: Optional[UUID] = None) -> bool:
        query = select(self.model.id).where(
            func.lower(self.model.name) == name.lower(),
            *self._sibling_filter(parent_id)
        )
        if exclude_id:
            query = query.where(self.model.id != exclude_id)
        return (await self.db.execute(query.limit(1))).scalar() is not None

    async def _order_taken(self, order_number: int, parent_id: Optional[UUID], exclude_id: Optional[UUID] = None) -> bool:
        query = select(self.model.id).where(
            self.model.order_number == order_number,
            *self._sibling_filter(parent_id)
        )
        if exclude_id:
            query = query.where(self.model.id != exclude_id)
        return (await self.db.execute(query.limit(1))).scalar() is not None

    async def _next_order_number(self, parent_id: Optional[UUID]) -> int:
        query = select(func.max(self.model.order_number)).where(*self._sibling_filter(parent_id))
        current = (await self.db.execute(query)).scalar()
        return (current or 0) + 1

    async def _unique_slug(self, name: str, parent_id: Optional[UUID], exclude_id: Optional[UUID] = None) -> str:
        base = create_slug(name) or self.level

        async def exists(candidate: str) -> bool:
            query = select(self.model.id).where(
                self.model.slug == candidate,
                *self._sibling_filter(parent_id)
            )
            if exclude_id:
                query = query.where(self.model.id != exclude_id)
            return (await self.db.execute(query.limit(1))).scalar() is not None

        return await unique_slug(base, exists)

    # ========================================================================
    # Writes
    # ========================================================================
    async def create_node(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a node; only the direct parent id is needed"""
        parent_id = data.get(self.parent_field) if self.parent_field else None
        ancestors = await self.hierarchy.resolve_ancestors(self.level, parent_id)

        name = normalise_name(self.level, data["name"])
        if await self._name_taken(name, parent_id):
            raise Conflict(f"{self.label} '{name}' already exists")

        order_number = data.get("order_number")
        if order_number is None:
            order_number = await self._next_order_number(parent_id)
        elif await self._order_taken(order_number, parent_id):
            raise Conflict(f"Order number {order_number} is already used by another {self.label.lower()}")

        node = self.model(
            name=name,
            slug=await self._unique_slug(name, parent_id),
            order_number=order_number,
            status=data.get("status") or "active",
            **ancestors
        )
        for field in LEVEL_FIELDS.get(self.level, ()):
            if data.get(field) is not None:
                setattr(node, field, data[field])

        self.db.add(node)
        await self.db.commit()
        await self.db.refresh(node)
        await invalidate_content_cache()

        logger.info(f"✅ Created {self.level}: {node.name} ({node.id})")
        return node_to_dict(self.level, node)

    async def update_node(self, node_id: UUID, updates: Dict[str, Any]) -> Dict[str, Any]:
        node = await self.hierarchy.get_node(self.level, node_id)
        parent_id = getattr(node, self.parent_field) if self.parent_field else None

        if updates.get("name"):
            name = normalise_name(self.level, updates["name"])
            if name != node.name:
                if await self._name_taken(name, parent_id, exclude_id=node.id):
                    raise Conflict(f"{self.label} '{name}' already exists")
                node.name = name
                node.slug = await self._unique_slug(name, parent_id, exclude_id=node.id)

        order_number = updates.get("order_number")
        if order_number is not None and order_number != node.order_number:
            if await self._order_taken(order_number, parent_id, exclude_id=node.id):
                raise Conflict(f"Order number {order_number} is already used by another {self.label.lower()}")
            node.order_number = order_number

        for field in LEVEL_FIELDS.get(self.level, ()):
            if updates.get(field) is not None:
                setattr(node, field, updates[field])

        status = updates.get("status")
        if status and status != node.status:
            await self.hierarchy.set_status(self.level, node.id, status)

        await self.db.commit()
        await self.db.refresh(node)
        await invalidate_content_cache()

        logger.info(f"✏️ Updated {self.level}: {node.name} ({node.id})")
        return await self.get_node(node.id)

    async def set_status(self, node_id: UUID, status: str) -> Dict[str, Any]:
        counts = await self.hierarchy.set_status(self.level, node_id, status)
        await self.db.commit()
        await invalidate_content_cache()
        return {"id": str(node_id), "status": status, "updated": counts}

    async def delete_node(self, node_id: UUID) -> Dict[str, Any]:
        node = await self.hierarchy.get_node(self.level, node_id)
        name = node.name
        counts = await self.hierarchy.delete(self.level, node_id)
        await self.db.commit()
        await invalidate_content_cache(
            practice=bool(counts["practice_categories"] or counts["practice_subcategories"])
        )

        logger.info(f"🗑️ Deleted {self.level} {name} ({node_id}) with cascade: {counts}")
        return {"message": f"{self.label} deleted successfully", "deleted": counts}

    async def reorder(self, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Apply new order numbers to siblings.

        Rows first move to ``REORDER_TEMP_BASE + i`` so that swapping two
        order numbers never trips the (parent, order_number) constraint.
        """
        ids = [item["id"] for item in items]
        if len(set(ids)) != len(ids):
            raise InvalidRequest("Duplicate ids in reorder request")
        numbers = [item["order_number"] for item in items]
        if len(set(numbers)) != len(numbers):
            raise InvalidRequest("Duplicate order numbers in reorder request")

        result = await self.db.execute(select(self.model).where(self.model.id.in_(ids)))
        nodes = {n.id: n for n in result.scalars().all()}
        missing = [str(i) for i in ids if i not in nodes]
        if missing:
            raise NotFound(self.label, ", ".join(missing))

        if self.parent_field:
            parents = {getattr(n, self.parent_field) for n in nodes.values()}
            if len(parents) > 1:
                raise InvalidRequest(f"All {self.label.lower()} items must share the same parent")

        for index, node_id in enumerate(ids):
            nodes[node_id].order_number = settings.REORDER_TEMP_BASE + index
        await self.db.flush()

        for item in items:
            nodes[item["id"]].order_number = item["order_number"]
        await self.db.commit()
        await invalidate_content_cache()

        logger.info(f"↕️ Reordered {len(items)} {self.level} items")
        return {
            "message": f"{self.label} order updated",
            "items": [{"id": str(i["id"]), "order_number": i["order_number"]} for i in items]
        }

    # ========================================================================
    # Details (page content + SEO)
    # ========================================================================
    async def _get_details(self, node_id: UUID) -> Optional[ContentDetails]:
        result = await self.db.execute(
            select(ContentDetails).where(
                ContentDetails.entity_type == self.level,
                ContentDetails.entity_id == node_id
            )
        )
        return result.scalar_one_or_none()

    async def get_details(self, node_id: UUID) -> Dict[str, Any]:
        await self.hierarchy.get_node(self.level, node_id)
        return details_to_dict(self.level, node_id, await self._get_details(node_id))

    async def save_details(self, node_id: UUID, data: Dict[str, Any]) -> Dict[str, Any]:
        await self.hierarchy.get_node(self.level, node_id)
        details = await self._get_details(node_id)
        if details is None:
            details = ContentDetails(entity_type=self.level, entity_id=node_id)
            self.db.add(details)
        for field in ("content", "title", "meta_description", "keywords", "status"):
            if field in data and data[field] is not None:
                setattr(details, field, data[field])

        await self.db.commit()
        await self.db.refresh(details)
        await cache.invalidate(BROWSE_CACHE_PREFIX)

        logger.info(f"📝 Saved details for {self.level} {node_id}")
        return details_to_dict(self.level, node_id, details)

    async def delete_details(self, node_id: UUID) -> Dict[str, Any]:
        await self.hierarchy.get_node(self.level, node_id)
        details = await self._get_details(node_id)
        if details is None:
            raise NotFound(f"{self.label} details", str(node_id))
        await self.db.delete(details)
        await self.db.commit()
        await cache.invalidate(BROWSE_CACHE_PREFIX)
        return {"message": f"{self.label} details deleted successfully"}
