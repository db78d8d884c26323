# ============================================================================
# Content Tree & Public Browse Service
# ============================================================================
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFound
from portal.core.redis import cache
from portal.models.curriculum import ContentDetails
from portal.services.content_service import TREE_CACHE_PREFIX, BROWSE_CACHE_PREFIX, node_to_dict
from portal.services.hierarchy import LEVELS, MODELS, LABELS, PLURALS, parent_field, child_level

logger = logging.getLogger(__name__)

# Levels shown in the navigation tree (definitions are reached through browse)
TREE_LEVELS = LEVELS[:-1]

def _summary(node) -> Dict[str, Any]:
    return {
        "id": str(node.id),
        "name": node.name,
        "slug": node.slug,
        "order_number": node.order_number,
        "status": node.status,
    }

def _try_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except ValueError:
        return None

class TreeService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_tree(self, status: str = "active", exam_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        """
        Nested exams -> subjects -> units -> chapters -> topics -> subtopics.

        Cached per (status, exam) until the next content write.
        """
        status = (status or "active").lower()
        cache_key = f"{TREE_CACHE_PREFIX}{status}:{exam_id or 'all'}"
        cached = await cache.get_json(cache_key)
        if cached is not None:
            return cached

        nodes_by_level: Dict[str, List[Any]] = {}
        for level in TREE_LEVELS:
            model = MODELS[level]
            query = select(model)
            if status != "all":
                query = query.where(func.lower(model.status) == status)
            if exam_id:
                query = query.where((model.id if level == "exam" else model.exam_id) == exam_id)
            query = query.order_by(model.order_number.asc(), model.created_at.asc())
            nodes_by_level[level] = list((await self.db.execute(query)).scalars().all())

        # Build bottom-up: attach each level's dicts to their parent's children list
        children: Dict[UUID, List[Dict[str, Any]]] = {}
        for level in reversed(TREE_LEVELS):
            below = child_level(level)
            key = PLURALS[below] if below in TREE_LEVELS else None
            next_children: Dict[UUID, List[Dict[str, Any]]] = {}
            for node in nodes_by_level[level]:
                item = _summary(node)
                if key:
                    item[key] = children.get(node.id, [])
                field = parent_field(level)
                parent_key = getattr(node, field) if field else None
                next_children.setdefault(parent_key, []).append(item)
            children = next_children

        tree = children.get(None, [])
        logger.debug(f"🌳 Built content tree ({status}, exam={exam_id}): {len(tree)} exams")
        await cache.set_json(cache_key, tree)
        return tree

    async def browse(self, segments: List[str]) -> Dict[str, Any]:
        """
        Resolve a public path of slugs (or ids), one segment per level.

        Only active nodes are visible. Returns the node, its breadcrumb, its
        published details and its active children.
        """
        segments = [s for s in segments if s]
        if not segments or len(segments) > len(LEVELS):
            raise NotFound("Page", "/".join(segments))

        cache_key = f"{BROWSE_CACHE_PREFIX}{'/'.join(segments)}"
        cached = await cache.get_json(cache_key)
        if cached is not None:
            return cached

        breadcrumb: List[Dict[str, Any]] = []
        node = None
        level = None
        for index, segment in enumerate(segments):
            level = LEVELS[index]
            model = MODELS[level]
            query = select(model).where(func.lower(model.status) == "active")
            if node is not None:
                query = query.where(getattr(model, parent_field(level)) == node.id)
            segment_id = _try_uuid(segment)
            if segment_id:
                query = query.where(model.id == segment_id)
            else:
                query = query.where(model.slug == segment.lower())
            node = (await self.db.execute(query.limit(1))).scalar_one_or_none()
            if node is None:
                raise NotFound(LABELS[level], segment)
            breadcrumb.append({"level": level, "id": str(node.id), "name": node.name, "slug": node.slug})

        details = (await self.db.execute(
            select(ContentDetails).where(
                ContentDetails.entity_type == level,
                ContentDetails.entity_id == node.id,
                ContentDetails.status == "publish"
            )
        )).scalar_one_or_none()

        child_items: List[Dict[str, Any]] = []
        below = child_level(level)
        if below:
            model = MODELS[below]
            result = await self.db.execute(
                select(model)
                .where(getattr(model, parent_field(below)) == node.id, func.lower(model.status) == "active")
                .order_by(model.order_number.asc())
            )
            child_items = [_summary(c) for c in result.scalars().all()]

        page = {
            "level": level,
            "node": node_to_dict(level, node, details),
            "breadcrumb": breadcrumb,
            "details": {
                "title": details.title,
                "content": details.content,
                "meta_description": details.meta_description,
                "keywords": details.keywords,
            } if details else None,
            "children_level": below,
            "children": child_items,
        }
        await cache.set_json(cache_key, page)
        return page
