# ============================================================================
# Content Hierarchy Service
# ============================================================================
"""
Structural operations over the fixed content hierarchy:

    exam -> subject -> unit -> chapter -> topic -> subtopic -> definition

Every node stores the ids of all its ancestors (``exam_id``, ``subject_id``,
...), so the descendants of a node at any lower level are simply the rows
whose ``<level>_id`` column equals the node id.
"""
from typing import Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, update, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFound, InvalidRequest
from portal.models.curriculum import (
    Exam, Subject, Unit, Chapter, Topic, SubTopic, Definition, ContentDetails
)
from portal.models.practice import (
    PracticeCategory, PracticeSubCategory, PracticeQuestion, StudentTestResult
)
from portal.models.progress import ChapterProgress, UnitProgress, SubjectProgress

logger = logging.getLogger(__name__)

LEVELS = ["exam", "subject", "unit", "chapter", "topic", "subtopic", "definition"]

MODELS = {
    "exam": Exam,
    "subject": Subject,
    "unit": Unit,
    "chapter": Chapter,
    "topic": Topic,
    "subtopic": SubTopic,
    "definition": Definition,
}

LABELS = {
    "exam": "Exam",
    "subject": "Subject",
    "unit": "Unit",
    "chapter": "Chapter",
    "topic": "Topic",
    "subtopic": "SubTopic",
    "definition": "Definition",
}

PLURALS = {
    "exam": "exams",
    "subject": "subjects",
    "unit": "units",
    "chapter": "chapters",
    "topic": "topics",
    "subtopic": "subtopics",
    "definition": "definitions",
}

def check_level(level: str) -> str:
    if level not in MODELS:
        raise InvalidRequest(f"Unknown content level: {level}", error_code="INVALID_LEVEL")
    return level

def parent_level(level: str) -> Optional[str]:
    index = LEVELS.index(level)
    return LEVELS[index - 1] if index > 0 else None

def child_level(level: str) -> Optional[str]:
    index = LEVELS.index(level)
    return LEVELS[index + 1] if index + 1 < len(LEVELS) else None

def parent_field(level: str) -> Optional[str]:
    """Name of the column pointing at the direct parent (``None`` for exams)."""
    parent = parent_level(level)
    return f"{parent}_id" if parent else None

def ancestor_fields(level: str) -> List[str]:
    return [f"{lvl}_id" for lvl in LEVELS[:LEVELS.index(level)]]

class HierarchyService:
    """Ancestor resolution, descendant discovery and cascading writes"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_node(self, level: str, node_id: UUID):
        node = await self.db.get(MODELS[check_level(level)], node_id)
        if not node:
            raise NotFound(LABELS[level], str(node_id))
        return node

    async def resolve_ancestors(self, level: str, parent_id: Optional[UUID]) -> Dict[str, UUID]:
        """Ancestor id columns for a new ``level`` node under ``parent_id``."""
        parent = parent_level(check_level(level))
        if parent is None:
            return {}
        if parent_id is None:
            raise InvalidRequest(f"{LABELS[parent]} id is required", error_code="PARENT_REQUIRED")

        parent_node = await self.db.get(MODELS[parent], parent_id)
        if not parent_node:
            raise NotFound(LABELS[parent], str(parent_id))

        ancestors = {field: getattr(parent_node, field) for field in ancestor_fields(parent)}
        ancestors[f"{parent}_id"] = parent_node.id
        return ancestors

    async def collect_descendants(self, level: str, node_id: UUID) -> Dict[str, List[UUID]]:
        """Ids of the node and of every node beneath it, keyed by level."""
        check_level(level)
        collected = {level: [node_id]}
        for lower in LEVELS[LEVELS.index(level) + 1:]:
            model = MODELS[lower]
            result = await self.db.execute(
                select(model.id).where(getattr(model, f"{level}_id") == node_id)
            )
            collected[lower] = list(result.scalars().all())
        return collected

    # ========================================================================
    # Cascading delete
    # ========================================================================
    async def delete(self, level: str, node_id: UUID) -> Dict[str, int]:
        """
        Remove a node together with everything that depends on it.

        Returns the number of removed rows per entity type. The caller owns
        the transaction.
        """
        await self.get_node(level, node_id)
        ids = await self.collect_descendants(level, node_id)
        counts: Dict[str, int] = {}

        # Details of every removed node
        details_removed = 0
        for lvl, lvl_ids in ids.items():
            if lvl_ids:
                result = await self.db.execute(
                    delete(ContentDetails).where(
                        ContentDetails.entity_type == lvl,
                        ContentDetails.entity_id.in_(lvl_ids)
                    )
                )
                details_removed += result.rowcount or 0
        counts["details"] = details_removed

        # Practice tests hanging off removed nodes
        counts.update(await self._delete_practice(level, node_id, ids))

        # Student progress for removed units, chapters and subjects
        counts.update(await self._delete_progress(ids))

        # Content nodes, deepest level first
        for lvl in reversed(LEVELS[LEVELS.index(level):]):
            lvl_ids = ids.get(lvl, [])
            if not lvl_ids:
                counts[PLURALS[lvl]] = 0
                continue
            model = MODELS[lvl]
            await self.db.execute(delete(model).where(model.id.in_(lvl_ids)))
            counts[PLURALS[lvl]] = len(lvl_ids)
            logger.info(f"🗑️ Deleted {len(lvl_ids)} {PLURALS[lvl]} under {level} {node_id}")

        return counts

    async def _delete_practice(self, level: str, node_id: UUID, ids: Dict[str, List[UUID]]) -> Dict[str, int]:
        category_ids: List[UUID] = []
        if level in ("exam", "subject"):
            column = PracticeCategory.exam_id if level == "exam" else PracticeCategory.subject_id
            result = await self.db.execute(select(PracticeCategory.id).where(column == node_id))
            category_ids = list(result.scalars().all())

        link_filters = []
        for lvl, column in (
            ("unit", PracticeSubCategory.unit_id),
            ("chapter", PracticeSubCategory.chapter_id),
            ("topic", PracticeSubCategory.topic_id),
            ("subtopic", PracticeSubCategory.subtopic_id),
        ):
            if ids.get(lvl):
                link_filters.append(column.in_(ids[lvl]))
        if category_ids:
            link_filters.append(PracticeSubCategory.category_id.in_(category_ids))

        subcategory_ids: List[UUID] = []
        if link_filters:
            result = await self.db.execute(select(PracticeSubCategory.id).where(or_(*link_filters)))
            subcategory_ids = list(result.scalars().all())

        counts = {"practice_results": 0, "practice_questions": 0, "practice_subcategories": 0, "practice_categories": 0}
        if subcategory_ids:
            result = await self.db.execute(
                delete(StudentTestResult).where(StudentTestResult.test_id.in_(subcategory_ids))
            )
            counts["practice_results"] += result.rowcount or 0
            result = await self.db.execute(
                delete(PracticeQuestion).where(PracticeQuestion.subcategory_id.in_(subcategory_ids))
            )
            counts["practice_questions"] = result.rowcount or 0
            await self.db.execute(
                delete(PracticeSubCategory).where(PracticeSubCategory.id.in_(subcategory_ids))
            )
            counts["practice_subcategories"] = len(subcategory_ids)
        if category_ids:
            result = await self.db.execute(
                delete(StudentTestResult).where(StudentTestResult.category_id.in_(category_ids))
            )
            counts["practice_results"] += result.rowcount or 0
            await self.db.execute(
                delete(PracticeCategory).where(PracticeCategory.id.in_(category_ids))
            )
            counts["practice_categories"] = len(category_ids)

        if subcategory_ids or category_ids:
            logger.info(
                f"🗑️ Deleted {counts['practice_categories']} practice categories, "
                f"{counts['practice_subcategories']} tests, {counts['practice_questions']} questions"
            )
        return counts

    async def _delete_progress(self, ids: Dict[str, List[UUID]]) -> Dict[str, int]:
        removed = 0
        chapter_filters = []
        if ids.get("chapter"):
            chapter_filters.append(ChapterProgress.chapter_id.in_(ids["chapter"]))
        if ids.get("unit"):
            chapter_filters.append(ChapterProgress.unit_id.in_(ids["unit"]))
            result = await self.db.execute(
                delete(UnitProgress).where(UnitProgress.unit_id.in_(ids["unit"]))
            )
            removed += result.rowcount or 0
        if chapter_filters:
            result = await self.db.execute(delete(ChapterProgress).where(or_(*chapter_filters)))
            removed += result.rowcount or 0
        if ids.get("subject"):
            result = await self.db.execute(
                delete(SubjectProgress).where(SubjectProgress.subject_id.in_(ids["subject"]))
            )
            removed += result.rowcount or 0
        if removed:
            logger.info(f"🗑️ Deleted {removed} progress rows")
        return {"progress": removed}

    # ========================================================================
    # Cascading status
    # ========================================================================
    async def set_status(self, level: str, node_id: UUID, status: str) -> Dict[str, int]:
        """
        Set the status of a node and all of its descendants.

        Exams may also be ``draft``; their descendants then become ``inactive``.
        """
        node = await self.get_node(level, node_id)
        allowed = ("active", "inactive", "draft") if level == "exam" else ("active", "inactive")
        status = (status or "").strip().lower()
        if status not in allowed:
            raise InvalidRequest(f"status must be one of: {', '.join(allowed)}", error_code="INVALID_STATUS")

        node.status = status
        counts = {PLURALS[level]: 1}
        descendant_status = status if status in ("active", "inactive") else "inactive"
        for lower in LEVELS[LEVELS.index(level) + 1:]:
            model = MODELS[lower]
            result = await self.db.execute(
                update(model)
                .where(getattr(model, f"{level}_id") == node_id)
                .values(status=descendant_status)
            )
            counts[PLURALS[lower]] = result.rowcount or 0

        await self.db.flush()
        logger.info(f"🔁 {LABELS[level]} {node_id} set to {status}: {counts}")
        return counts
