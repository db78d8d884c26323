# ============================================================================
# Student Progress Service
# ============================================================================
"""
Chapter progress is derived from the pages a student has opened:

    progress = round(100 * visited / total)

where ``total`` counts the chapter page itself plus its active topics,
their active subtopics and those subtopics' active definitions. Unit
progress averages the unit's active chapters (unvisited chapters count as
0) and subject progress averages the subject's active units.

A manual override pins a chapter's progress until it is cleared.
"""
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID
import logging
import math

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFound, InvalidRequest
from portal.models.curriculum import Subject, Unit, Chapter, Topic, SubTopic, Definition
from portal.models.progress import ChapterProgress, UnitProgress, SubjectProgress

logger = logging.getLogger(__name__)

VISIT_TYPES = ("chapter", "topic", "subtopic", "definition")
CONGRATULATION_LEVELS = ("chapter", "unit", "subject")

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

def clamp_percent(value: float) -> int:
    return max(0, min(100, round_half_up(value)))

def chapter_progress_to_dict(row: ChapterProgress) -> Dict[str, Any]:
    return {
        "chapter_id": str(row.chapter_id),
        "unit_id": str(row.unit_id),
        "progress": row.progress,
        "is_completed": row.is_completed,
        "is_manual_override": row.is_manual_override,
        "manual_progress": row.manual_progress,
        "auto_calculated_progress": row.auto_calculated_progress,
        "visited_chapter": row.visited_chapter,
        "visited_topics": list(row.visited_topics or []),
        "visited_subtopics": list(row.visited_subtopics or []),
        "visited_definitions": list(row.visited_definitions or []),
        "congratulations_shown": row.congratulations_shown,
        "last_updated": row.last_updated.isoformat() if row.last_updated else None,
    }

class ProgressService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # Row helpers
    # ========================================================================
    async def _get_chapter(self, chapter_id: UUID) -> Chapter:
        chapter = await self.db.get(Chapter, chapter_id)
        if not chapter:
            raise NotFound("Chapter", str(chapter_id))
        return chapter

    async def _chapter_row(self, student_id: UUID, chapter_id: UUID) -> Optional[ChapterProgress]:
        result = await self.db.execute(
            select(ChapterProgress).where(
                ChapterProgress.student_id == student_id,
                ChapterProgress.chapter_id == chapter_id
            )
        )
        return result.scalar_one_or_none()

    async def _ensure_chapter_row(self, student_id: UUID, chapter: Chapter) -> ChapterProgress:
        row = await self._chapter_row(student_id, chapter.id)
        if row is None:
            row = ChapterProgress(
                student_id=student_id,
                unit_id=chapter.unit_id,
                chapter_id=chapter.id,
                progress=0,
                is_completed=False,
                is_manual_override=False,
                auto_calculated_progress=0,
                visited_chapter=False,
                visited_topics=[],
                visited_subtopics=[],
                visited_definitions=[],
                congratulations_shown=False
            )
            self.db.add(row)
        return row

    async def _unit_row(self, student_id: UUID, unit_id: UUID) -> Optional[UnitProgress]:
        result = await self.db.execute(
            select(UnitProgress).where(UnitProgress.student_id == student_id, UnitProgress.unit_id == unit_id)
        )
        return result.scalar_one_or_none()

    async def _subject_row(self, student_id: UUID, subject_id: UUID) -> Optional[SubjectProgress]:
        result = await self.db.execute(
            select(SubjectProgress).where(
                SubjectProgress.student_id == student_id,
                SubjectProgress.subject_id == subject_id
            )
        )
        return result.scalar_one_or_none()

    async def _active_ids(self, model, **filters) -> Set[str]:
        query = select(model.id).where(func.lower(model.status) == "active")
        for field, value in filters.items():
            if isinstance(value, (set, list, tuple)):
                if not value:
                    return set()
                query = query.where(getattr(model, field).in_([UUID(v) for v in value]))
            else:
                query = query.where(getattr(model, field) == value)
        return {str(i) for i in (await self.db.execute(query)).scalars().all()}

    # ========================================================================
    # Calculations
    # ========================================================================
    async def _auto_progress(self, row: ChapterProgress) -> int:
        topic_ids = await self._active_ids(Topic, chapter_id=row.chapter_id)
        subtopic_ids = await self._active_ids(SubTopic, topic_id=topic_ids)
        definition_ids = await self._active_ids(Definition, subtopic_id=subtopic_ids)

        total = 1 + len(topic_ids) + len(subtopic_ids) + len(definition_ids)
        visited = (
            (1 if row.visited_chapter else 0)
            + len(topic_ids & set(row.visited_topics or []))
            + len(subtopic_ids & set(row.visited_subtopics or []))
            + len(definition_ids & set(row.visited_definitions or []))
        )
        return clamp_percent(100 * visited / total)

    async def _refresh_chapter(self, row: ChapterProgress) -> ChapterProgress:
        row.auto_calculated_progress = await self._auto_progress(row)
        if row.is_manual_override and row.manual_progress is not None:
            row.progress = clamp_percent(row.manual_progress)
        else:
            row.progress = row.auto_calculated_progress
        row.is_completed = row.progress == 100
        await self.db.flush()
        return row

    async def _refresh_unit(self, student_id: UUID, unit_id: UUID) -> UnitProgress:
        unit = await self.db.get(Unit, unit_id)
        if not unit:
            raise NotFound("Unit", str(unit_id))

        chapter_ids = await self._active_ids(Chapter, unit_id=unit_id)
        progress = 0
        if chapter_ids:
            result = await self.db.execute(
                select(func.coalesce(func.sum(ChapterProgress.progress), 0)).where(
                    ChapterProgress.student_id == student_id,
                    ChapterProgress.chapter_id.in_([UUID(c) for c in chapter_ids])
                )
            )
            progress = clamp_percent((result.scalar() or 0) / len(chapter_ids))

        row = await self._unit_row(student_id, unit_id)
        if row is None:
            row = UnitProgress(student_id=student_id, unit_id=unit_id, subject_id=unit.subject_id,
                               congratulations_shown=False)
            self.db.add(row)
        row.progress = progress
        await self.db.flush()
        return row

    async def _refresh_subject(self, student_id: UUID, subject_id: UUID) -> SubjectProgress:
        unit_ids = await self._active_ids(Unit, subject_id=subject_id)
        progress = 0
        if unit_ids:
            result = await self.db.execute(
                select(func.coalesce(func.sum(UnitProgress.progress), 0)).where(
                    UnitProgress.student_id == student_id,
                    UnitProgress.unit_id.in_([UUID(u) for u in unit_ids])
                )
            )
            progress = clamp_percent((result.scalar() or 0) / len(unit_ids))

        row = await self._subject_row(student_id, subject_id)
        if row is None:
            row = SubjectProgress(student_id=student_id, subject_id=subject_id, congratulations_shown=False)
            self.db.add(row)
        row.progress = progress
        await self.db.flush()
        return row

    async def _refresh_rollups(self, student_id: UUID, unit_ids: Iterable[UUID]) -> Dict[str, Any]:
        units: Dict[UUID, UnitProgress] = {}
        subjects: Dict[UUID, SubjectProgress] = {}
        for unit_id in dict.fromkeys(unit_ids):
            units[unit_id] = await self._refresh_unit(student_id, unit_id)
        for unit_row in units.values():
            if unit_row.subject_id and unit_row.subject_id not in subjects:
                subjects[unit_row.subject_id] = await self._refresh_subject(student_id, unit_row.subject_id)
        return {"units": units, "subjects": subjects}

    def _visit_response(self, row: ChapterProgress, unit: UnitProgress, subject: Optional[SubjectProgress]) -> Dict[str, Any]:
        return {
            "chapter": chapter_progress_to_dict(row),
            "unit": {
                "unit_id": str(unit.unit_id),
                "progress": unit.progress,
                "congratulations_shown": unit.congratulations_shown,
            },
            "subject": {
                "subject_id": str(subject.subject_id),
                "progress": subject.progress,
                "congratulations_shown": subject.congratulations_shown,
            } if subject else None,
            "show_congratulations": {
                "chapter": row.is_completed and not row.congratulations_shown,
                "unit": unit.progress == 100 and not unit.congratulations_shown,
                "subject": bool(subject and subject.progress == 100 and not subject.congratulations_shown),
            },
        }

    # ========================================================================
    # Operations
    # ========================================================================
    async def track_visit(self, student_id: UUID, chapter_id: UUID, item_type: str, item_id: Optional[UUID] = None) -> Dict[str, Any]:
        """Record that a student opened a chapter page or one of its items"""
        if item_type not in VISIT_TYPES:
            raise InvalidRequest(f"item_type must be one of: {', '.join(VISIT_TYPES)}")
        chapter = await self._get_chapter(chapter_id)
        row = await self._ensure_chapter_row(student_id, chapter)

        if item_type == "chapter":
            row.visited_chapter = True
        else:
            if item_id is None:
                raise InvalidRequest(f"item_id is required for {item_type} visits")
            model = {"topic": Topic, "subtopic": SubTopic, "definition": Definition}[item_type]
            item = await self.db.get(model, item_id)
            if not item:
                raise NotFound(item_type.capitalize(), str(item_id))
            if item.chapter_id != chapter.id:
                raise InvalidRequest(f"{item_type.capitalize()} does not belong to this chapter")

            column = f"visited_{item_type}s"
            visited = list(getattr(row, column) or [])
            if str(item_id) not in visited:
                # reassign so the JSON column is flagged dirty
                setattr(row, column, visited + [str(item_id)])

        await self._refresh_chapter(row)
        rollups = await self._refresh_rollups(student_id, [chapter.unit_id])
        await self.db.commit()

        unit = rollups["units"][chapter.unit_id]
        subject = rollups["subjects"].get(unit.subject_id)
        logger.info(f"📈 Student {student_id} visited {item_type} in chapter {chapter_id}: {row.progress}%")
        return self._visit_response(row, unit, subject)

    async def calculate(self, student_id: UUID, chapter_id: UUID) -> Dict[str, Any]:
        """Recompute an existing chapter row (e.g. after content changed)"""
        row = await self._chapter_row(student_id, chapter_id)
        if row is None:
            raise NotFound("Chapter progress", str(chapter_id))
        await self._refresh_chapter(row)
        rollups = await self._refresh_rollups(student_id, [row.unit_id])
        await self.db.commit()

        unit = rollups["units"][row.unit_id]
        return self._visit_response(row, unit, rollups["subjects"].get(unit.subject_id))

    async def set_progress(self, student_id: UUID, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Manually set chapter progress. ``manual_progress=None`` clears the
        override and falls back to the visit-based value.
        """
        rows = []
        for item in items:
            chapter = await self._get_chapter(item["chapter_id"])
            row = await self._ensure_chapter_row(student_id, chapter)
            manual = item.get("manual_progress")
            if manual is None:
                row.is_manual_override = False
                row.manual_progress = None
            else:
                row.is_manual_override = True
                row.manual_progress = clamp_percent(manual)
            await self._refresh_chapter(row)
            rows.append(row)

        rollups = await self._refresh_rollups(student_id, [r.unit_id for r in rows])
        await self.db.commit()

        logger.info(f"📈 Student {student_id} progress set for {len(rows)} chapters")
        return {
            "chapters": [chapter_progress_to_dict(r) for r in rows],
            "units": [
                {"unit_id": str(u.unit_id), "progress": u.progress} for u in rollups["units"].values()
            ],
            "subjects": [
                {"subject_id": str(s.subject_id), "progress": s.progress} for s in rollups["subjects"].values()
            ],
        }

    async def get_progress(self, student_id: UUID, unit_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        """Unit progress rows with their chapter rows"""
        query = select(UnitProgress).where(UnitProgress.student_id == student_id)
        chapter_query = select(ChapterProgress).where(ChapterProgress.student_id == student_id)
        if unit_id:
            query = query.where(UnitProgress.unit_id == unit_id)
            chapter_query = chapter_query.where(ChapterProgress.unit_id == unit_id)

        units = (await self.db.execute(query)).scalars().all()
        chapters = (await self.db.execute(chapter_query)).scalars().all()
        by_unit: Dict[UUID, List[Dict[str, Any]]] = {}
        for c in chapters:
            by_unit.setdefault(c.unit_id, []).append(chapter_progress_to_dict(c))

        return [
            {
                "unit_id": str(u.unit_id),
                "subject_id": str(u.subject_id) if u.subject_id else None,
                "progress": u.progress,
                "congratulations_shown": u.congratulations_shown,
                "chapters": by_unit.get(u.unit_id, []),
            }
            for u in units
        ]

    async def get_subject_progress(self, student_id: UUID, subject_id: UUID) -> Dict[str, Any]:
        row = await self._subject_row(student_id, subject_id)
        return {
            "subject_id": str(subject_id),
            "progress": row.progress if row else 0,
            "congratulations_shown": row.congratulations_shown if row else False,
        }

    async def mark_congratulations(self, student_id: UUID, level: str, entity_id: UUID) -> Dict[str, Any]:
        """Remember that the completion message for a chapter/unit/subject was shown"""
        if level not in CONGRATULATION_LEVELS:
            raise InvalidRequest(f"level must be one of: {', '.join(CONGRATULATION_LEVELS)}")

        if level == "chapter":
            chapter = await self._get_chapter(entity_id)
            row = await self._ensure_chapter_row(student_id, chapter)
        elif level == "unit":
            row = await self._unit_row(student_id, entity_id)
            if row is None:
                unit = await self.db.get(Unit, entity_id)
                if not unit:
                    raise NotFound("Unit", str(entity_id))
                row = UnitProgress(student_id=student_id, unit_id=unit.id, subject_id=unit.subject_id, progress=0)
                self.db.add(row)
        else:
            row = await self._subject_row(student_id, entity_id)
            if row is None:
                if not await self.db.get(Subject, entity_id):
                    raise NotFound("Subject", str(entity_id))
                row = SubjectProgress(student_id=student_id, subject_id=entity_id, progress=0)
                self.db.add(row)

        row.congratulations_shown = True
        await self.db.commit()
        return {"level": level, "id": str(entity_id), "congratulations_shown": True}
