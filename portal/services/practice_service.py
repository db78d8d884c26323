# ============================================================================
# Practice Test Service
# ============================================================================
"""
Practice categories, tests (subcategories) and multiple-choice questions,
including bulk CSV import and the answer-free public test view.
"""
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFound, Conflict, InvalidRequest
from portal.core.redis import cache
from portal.models.curriculum import Exam, Subject, Unit, Chapter, Topic, SubTopic
from portal.models.practice import (
    PracticeCategory, PracticeSubCategory, PracticeQuestion, StudentTestResult, ANSWER_CHOICES
)
from portal.utils.csv_io import parse_csv
from portal.utils.pagination import paginated

logger = logging.getLogger(__name__)

PRACTICE_CACHE_PREFIX = "practice:"

IMPORT_REQUIRED_COLUMNS = ("question", "optionA", "optionB", "optionC", "optionD", "answer")

# Optional hierarchy links on a test, checked against the test's exam
SUBCATEGORY_LINKS = (
    ("unit_id", Unit, "Unit"),
    ("chapter_id", Chapter, "Chapter"),
    ("topic_id", Topic, "Topic"),
    ("subtopic_id", SubTopic, "SubTopic"),
)

def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None

def category_to_dict(c: PracticeCategory) -> Dict[str, Any]:
    return {
        "id": str(c.id),
        "exam_id": str(c.exam_id),
        "subject_id": str(c.subject_id) if c.subject_id else None,
        "name": c.name,
        "description": c.description or "",
        "order_number": c.order_number,
        "no_of_tests": c.no_of_tests,
        "mode": c.mode,
        "duration": c.duration or "",
        "language": c.language,
        "status": c.status,
        "created_at": _iso(c.created_at),
        "updated_at": _iso(c.updated_at),
    }

def subcategory_to_dict(s: PracticeSubCategory) -> Dict[str, Any]:
    data = {
        "id": str(s.id),
        "category_id": str(s.category_id),
        "name": s.name,
        "description": s.description or "",
        "duration": s.duration or "",
        "maximum_marks": s.maximum_marks,
        "number_of_questions": s.number_of_questions,
        "negative_marks": s.negative_marks,
        "order_number": s.order_number,
        "status": s.status,
        "created_at": _iso(s.created_at),
        "updated_at": _iso(s.updated_at),
    }
    for field, _, _ in SUBCATEGORY_LINKS:
        value = getattr(s, field)
        data[field] = str(value) if value else None
    return data

def question_to_dict(q: PracticeQuestion, include_answer: bool = True) -> Dict[str, Any]:
    data = {
        "id": str(q.id),
        "subcategory_id": str(q.subcategory_id),
        "question": q.question,
        "option_a": q.option_a,
        "option_b": q.option_b,
        "option_c": q.option_c,
        "option_d": q.option_d,
        "order_number": q.order_number,
        "status": q.status,
    }
    if include_answer:
        data.update({
            "answer": q.answer,
            "video_link": q.video_link or "",
            "details_explanation": q.details_explanation or "",
            "created_at": _iso(q.created_at),
            "updated_at": _iso(q.updated_at),
        })
    return data

class PracticeService:
    """Service for practice categories, tests and questions"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _invalidate(self) -> None:
        await cache.invalidate(PRACTICE_CACHE_PREFIX)

    # ========================================================================
    # Lookups
    # ========================================================================
    async def _get_category(self, category_id: UUID) -> PracticeCategory:
        category = await self.db.get(PracticeCategory, category_id)
        if not category:
            raise NotFound("Practice category", str(category_id))
        return category

    async def _get_subcategory(self, subcategory_id: UUID) -> PracticeSubCategory:
        subcategory = await self.db.get(PracticeSubCategory, subcategory_id)
        if not subcategory:
            raise NotFound("Practice subcategory", str(subcategory_id))
        return subcategory

    async def _get_question(self, question_id: UUID) -> PracticeQuestion:
        question = await self.db.get(PracticeQuestion, question_id)
        if not question:
            raise NotFound("Practice question", str(question_id))
        return question

    async def _exists(self, query) -> bool:
        return (await self.db.execute(query.limit(1))).scalar() is not None

    # ========================================================================
    # Categories
    # ========================================================================
    async def list_categories(
        self,
        exam_id: Optional[UUID] = None,
        subject_id: Optional[UUID] = None,
        status: Optional[str] = "active",
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10
    ) -> Dict[str, Any]:
        conditions = []
        if exam_id:
            conditions.append(PracticeCategory.exam_id == exam_id)
        if subject_id:
            conditions.append(PracticeCategory.subject_id == subject_id)
        if status and status.lower() != "all":
            conditions.append(func.lower(PracticeCategory.status) == status.lower())
        if search and search.strip():
            conditions.append(PracticeCategory.name.ilike(f"%{search.strip()}%"))

        total = (await self.db.execute(
            select(func.count(PracticeCategory.id)).where(*conditions)
        )).scalar() or 0
        result = await self.db.execute(
            select(PracticeCategory).where(*conditions)
            .order_by(PracticeCategory.order_number.asc(), PracticeCategory.created_at.desc())
            .offset((page - 1) * page_size).limit(page_size)
        )
        items = [category_to_dict(c) for c in result.scalars().all()]
        return paginated(items, total, page, page_size)

    async def get_category(self, category_id: UUID) -> Dict[str, Any]:
        return category_to_dict(await self._get_category(category_id))

    async def _check_subject(self, exam_id: UUID, subject_id: UUID) -> None:
        subject = await self.db.get(Subject, subject_id)
        if not subject or subject.exam_id != exam_id:
            raise InvalidRequest("Subject does not belong to the selected exam")

    async def create_category(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not await self.db.get(Exam, data["exam_id"]):
            raise NotFound("Exam", str(data["exam_id"]))
        if data.get("subject_id"):
            await self._check_subject(data["exam_id"], data["subject_id"])

        name = data["name"].strip()
        if await self._exists(select(PracticeCategory.id).where(
            PracticeCategory.exam_id == data["exam_id"],
            func.lower(PracticeCategory.name) == name.lower()
        )):
            raise Conflict(f"Practice category '{name}' already exists for this exam")

        order_number = data.get("order_number")
        if order_number is None:
            current = (await self.db.execute(
                select(func.max(PracticeCategory.order_number)).where(PracticeCategory.exam_id == data["exam_id"])
            )).scalar()
            order_number = (current or 0) + 1
        elif await self._exists(select(PracticeCategory.id).where(
            PracticeCategory.exam_id == data["exam_id"],
            PracticeCategory.order_number == order_number
        )):
            raise Conflict(f"Order number {order_number} is already used in this exam")

        category = PracticeCategory(**{**data, "name": name, "order_number": order_number})
        self.db.add(category)
        await self.db.commit()
        await self.db.refresh(category)
        await self._invalidate()

        logger.info(f"✅ Created practice category: {category.name}")
        return category_to_dict(category)

    async def update_category(self, category_id: UUID, updates: Dict[str, Any]) -> Dict[str, Any]:
        category = await self._get_category(category_id)

        if updates.get("subject_id"):
            await self._check_subject(category.exam_id, updates["subject_id"])

        if updates.get("name"):
            name = updates["name"].strip()
            if await self._exists(select(PracticeCategory.id).where(
                PracticeCategory.exam_id == category.exam_id,
                func.lower(PracticeCategory.name) == name.lower(),
                PracticeCategory.id != category.id
            )):
                raise Conflict(f"Practice category '{name}' already exists for this exam")
            updates["name"] = name

        order_number = updates.get("order_number")
        if order_number is not None and order_number != category.order_number:
            if await self._exists(select(PracticeCategory.id).where(
                PracticeCategory.exam_id == category.exam_id,
                PracticeCategory.order_number == order_number,
                PracticeCategory.id != category.id
            )):
                raise Conflict(f"Order number {order_number} is already used in this exam")

        status = updates.pop("status", None)
        for field, value in updates.items():
            if value is not None:
                setattr(category, field, value)
        if status and status != category.status:
            await self._cascade_category_status(category, status)

        await self.db.commit()
        await self.db.refresh(category)
        await self._invalidate()
        return category_to_dict(category)

    async def _cascade_category_status(self, category: PracticeCategory, status: str) -> Dict[str, int]:
        category.status = status
        sub_ids = list((await self.db.execute(
            select(PracticeSubCategory.id).where(PracticeSubCategory.category_id == category.id)
        )).scalars().all())
        counts = {"categories": 1, "subcategories": len(sub_ids), "questions": 0}
        if sub_ids:
            await self.db.execute(
                update(PracticeSubCategory).where(PracticeSubCategory.id.in_(sub_ids)).values(status=status)
            )
            result = await self.db.execute(
                update(PracticeQuestion).where(PracticeQuestion.subcategory_id.in_(sub_ids)).values(status=status)
            )
            counts["questions"] = result.rowcount or 0
        return counts

    async def set_category_status(self, category_id: UUID, status: str) -> Dict[str, Any]:
        category = await self._get_category(category_id)
        counts = await self._cascade_category_status(category, status)
        await self.db.commit()
        await self._invalidate()
        logger.info(f"🔁 Practice category {category_id} set to {status}: {counts}")
        return {"id": str(category_id), "status": status, "updated": counts}

    async def delete_category(self, category_id: UUID) -> Dict[str, Any]:
        category = await self._get_category(category_id)
        sub_ids = list((await self.db.execute(
            select(PracticeSubCategory.id).where(PracticeSubCategory.category_id == category.id)
        )).scalars().all())
        counts = await self._delete_subcategories(sub_ids)
        result = await self.db.execute(
            delete(StudentTestResult).where(StudentTestResult.category_id == category.id)
        )
        counts["results"] += result.rowcount or 0
        await self.db.delete(category)
        counts["categories"] = 1

        await self.db.commit()
        await self._invalidate()
        logger.info(f"🗑️ Deleted practice category {category.name}: {counts}")
        return {"message": "Practice category deleted successfully", "deleted": counts}

    async def _delete_subcategories(self, sub_ids: List[UUID]) -> Dict[str, int]:
        counts = {"subcategories": len(sub_ids), "questions": 0, "results": 0}
        if not sub_ids:
            return counts
        result = await self.db.execute(
            delete(StudentTestResult).where(StudentTestResult.test_id.in_(sub_ids))
        )
        counts["results"] = result.rowcount or 0
        result = await self.db.execute(
            delete(PracticeQuestion).where(PracticeQuestion.subcategory_id.in_(sub_ids))
        )
        counts["questions"] = result.rowcount or 0
        await self.db.execute(delete(PracticeSubCategory).where(PracticeSubCategory.id.in_(sub_ids)))
        return counts

    # ========================================================================
    # Subcategories (individual tests)
    # ========================================================================
    async def list_subcategories(
        self,
        category_id: Optional[UUID] = None,
        filters: Optional[Dict[str, UUID]] = None,
        status: Optional[str] = "active",
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10
    ) -> Dict[str, Any]:
        conditions = []
        if category_id:
            conditions.append(PracticeSubCategory.category_id == category_id)
        for field, value in (filters or {}).items():
            if value is not None:
                conditions.append(getattr(PracticeSubCategory, field) == value)
        if status and status.lower() != "all":
            conditions.append(func.lower(PracticeSubCategory.status) == status.lower())
        if search and search.strip():
            conditions.append(PracticeSubCategory.name.ilike(f"%{search.strip()}%"))

        total = (await self.db.execute(
            select(func.count(PracticeSubCategory.id)).where(*conditions)
        )).scalar() or 0
        result = await self.db.execute(
            select(PracticeSubCategory).where(*conditions)
            .order_by(PracticeSubCategory.order_number.asc(), PracticeSubCategory.created_at.desc())
            .offset((page - 1) * page_size).limit(page_size)
        )
        items = [subcategory_to_dict(s) for s in result.scalars().all()]
        return paginated(items, total, page, page_size)

    async def get_subcategory(self, subcategory_id: UUID) -> Dict[str, Any]:
        return subcategory_to_dict(await self._get_subcategory(subcategory_id))

    async def _check_links(self, exam_id: UUID, data: Dict[str, Any]) -> None:
        for field, model, label in SUBCATEGORY_LINKS:
            node_id = data.get(field)
            if not node_id:
                continue
            node = await self.db.get(model, node_id)
            if not node:
                raise NotFound(label, str(node_id))
            if node.exam_id != exam_id:
                raise InvalidRequest(f"{label} does not belong to the category's exam")

    async def create_subcategory(self, data: Dict[str, Any]) -> Dict[str, Any]:
        category = await self._get_category(data["category_id"])
        await self._check_links(category.exam_id, data)

        name = data["name"].strip()
        if await self._exists(select(PracticeSubCategory.id).where(
            PracticeSubCategory.category_id == category.id,
            func.lower(PracticeSubCategory.name) == name.lower()
        )):
            raise Conflict(f"Practice test '{name}' already exists in this category")

        order_number = data.get("order_number")
        if order_number is None:
            current = (await self.db.execute(
                select(func.max(PracticeSubCategory.order_number))
                .where(PracticeSubCategory.category_id == category.id)
            )).scalar()
            order_number = (current or 0) + 1

        subcategory = PracticeSubCategory(**{**data, "name": name, "order_number": order_number})
        self.db.add(subcategory)
        await self.db.commit()
        await self.db.refresh(subcategory)
        await self._invalidate()

        logger.info(f"✅ Created practice test: {subcategory.name} in {category.name}")
        return subcategory_to_dict(subcategory)

    async def update_subcategory(self, subcategory_id: UUID, updates: Dict[str, Any]) -> Dict[str, Any]:
        subcategory = await self._get_subcategory(subcategory_id)
        category = await self._get_category(subcategory.category_id)
        await self._check_links(category.exam_id, updates)

        if updates.get("name"):
            name = updates["name"].strip()
            if await self._exists(select(PracticeSubCategory.id).where(
                PracticeSubCategory.category_id == subcategory.category_id,
                func.lower(PracticeSubCategory.name) == name.lower(),
                PracticeSubCategory.id != subcategory.id
            )):
                raise Conflict(f"Practice test '{name}' already exists in this category")
            updates["name"] = name

        status = updates.pop("status", None)
        for field, value in updates.items():
            if value is not None:
                setattr(subcategory, field, value)
        if status and status != subcategory.status:
            await self._cascade_subcategory_status(subcategory, status)

        await self.db.commit()
        await self.db.refresh(subcategory)
        await self._invalidate()
        return subcategory_to_dict(subcategory)

    async def _cascade_subcategory_status(self, subcategory: PracticeSubCategory, status: str) -> Dict[str, int]:
        subcategory.status = status
        result = await self.db.execute(
            update(PracticeQuestion)
            .where(PracticeQuestion.subcategory_id == subcategory.id)
            .values(status=status)
        )
        return {"subcategories": 1, "questions": result.rowcount or 0}

    async def set_subcategory_status(self, subcategory_id: UUID, status: str) -> Dict[str, Any]:
        subcategory = await self._get_subcategory(subcategory_id)
        counts = await self._cascade_subcategory_status(subcategory, status)
        await self.db.commit()
        await self._invalidate()
        return {"id": str(subcategory_id), "status": status, "updated": counts}

    async def delete_subcategory(self, subcategory_id: UUID) -> Dict[str, Any]:
        subcategory = await self._get_subcategory(subcategory_id)
        name = subcategory.name
        counts = await self._delete_subcategories([subcategory.id])
        await self.db.commit()
        await self._invalidate()
        logger.info(f"🗑️ Deleted practice test {name}: {counts}")
        return {"message": "Practice subcategory deleted successfully", "deleted": counts}

    # ========================================================================
    # Questions
    # ========================================================================
    async def list_questions(
        self,
        subcategory_id: Optional[UUID] = None,
        status: Optional[str] = "active",
        page: int = 1,
        page_size: int = 10
    ) -> Dict[str, Any]:
        status = (status or "active").lower()
        cache_key = f"{PRACTICE_CACHE_PREFIX}questions:{subcategory_id or 'all'}:{page}:{page_size}"
        # Only the public (active) listing is cached
        if status == "active":
            cached = await cache.get_json(cache_key)
            if cached is not None:
                return cached

        conditions = []
        if subcategory_id:
            conditions.append(PracticeQuestion.subcategory_id == subcategory_id)
        if status != "all":
            conditions.append(func.lower(PracticeQuestion.status) == status)

        total = (await self.db.execute(
            select(func.count(PracticeQuestion.id)).where(*conditions)
        )).scalar() or 0
        result = await self.db.execute(
            select(PracticeQuestion).where(*conditions)
            .order_by(PracticeQuestion.order_number.asc(), PracticeQuestion.created_at.desc())
            .offset((page - 1) * page_size).limit(page_size)
        )
        response = paginated([question_to_dict(q) for q in result.scalars().all()], total, page, page_size)

        if status == "active":
            await cache.set_json(cache_key, response)
        return response

    async def get_question(self, question_id: UUID) -> Dict[str, Any]:
        return question_to_dict(await self._get_question(question_id))

    async def _next_question_number(self, subcategory_id: UUID) -> int:
        current = (await self.db.execute(
            select(func.max(PracticeQuestion.order_number))
            .where(PracticeQuestion.subcategory_id == subcategory_id)
        )).scalar()
        return (current or 0) + 1

    async def create_question(self, data: Dict[str, Any]) -> Dict[str, Any]:
        await self._get_subcategory(data["subcategory_id"])
        if data.get("order_number") is None:
            data["order_number"] = await self._next_question_number(data["subcategory_id"])

        text_fields = ("question", "option_a", "option_b", "option_c", "option_d",
                       "video_link", "details_explanation")
        question = PracticeQuestion(**{
            k: (v.strip() if k in text_fields and isinstance(v, str) else v)
            for k, v in data.items()
        })
        self.db.add(question)
        await self.db.commit()
        await self.db.refresh(question)
        await self._invalidate()
        return question_to_dict(question)

    async def update_question(self, question_id: UUID, updates: Dict[str, Any]) -> Dict[str, Any]:
        question = await self._get_question(question_id)
        for field, value in updates.items():
            if value is not None:
                setattr(question, field, value.strip() if isinstance(value, str) else value)
        await self.db.commit()
        await self.db.refresh(question)
        await self._invalidate()
        return question_to_dict(question)

    async def set_question_status(self, question_id: UUID, status: str) -> Dict[str, Any]:
        question = await self._get_question(question_id)
        question.status = status
        await self.db.commit()
        await self._invalidate()
        return {"id": str(question_id), "status": status}

    async def delete_question(self, question_id: UUID) -> Dict[str, Any]:
        question = await self._get_question(question_id)
        await self.db.delete(question)
        await self.db.commit()
        await self._invalidate()
        return {"message": "Practice question deleted successfully"}

    async def import_questions(self, subcategory_id: UUID, csv_text: str) -> Dict[str, Any]:
        """
        Bulk-create questions from CSV.

        Every row is validated before anything is written; a single bad row
        rejects the whole file.
        """
        await self._get_subcategory(subcategory_id)
        if not csv_text or not csv_text.strip():
            raise InvalidRequest("CSV file is empty", error_code="IMPORT_FAILED")

        rows, errors = parse_csv(csv_text, IMPORT_REQUIRED_COLUMNS)
        for row in rows:
            answer = row["answer"].upper()
            if answer not in ANSWER_CHOICES:
                errors.append(f"Row {row['_row']}: answer must be A, B, C, or D")
            row["answer"] = answer
        if errors:
            raise InvalidRequest("; ".join(errors[:20]), error_code="IMPORT_FAILED")
        if not rows:
            raise InvalidRequest("CSV file has no question rows", error_code="IMPORT_FAILED")

        order_number = await self._next_question_number(subcategory_id)
        for offset, row in enumerate(rows):
            self.db.add(PracticeQuestion(
                subcategory_id=subcategory_id,
                question=row["question"],
                option_a=row["optionA"],
                option_b=row["optionB"],
                option_c=row["optionC"],
                option_d=row["optionD"],
                answer=row["answer"],
                video_link=row.get("videoLink", ""),
                details_explanation=row.get("detailsExplanation", ""),
                order_number=order_number + offset,
                status="active"
            ))
        await self.db.commit()
        await self._invalidate()

        logger.info(f"📥 Imported {len(rows)} questions into practice test {subcategory_id}")
        return {"message": f"Imported {len(rows)} questions", "imported": len(rows)}

    async def get_public_test(self, subcategory_id: UUID) -> Dict[str, Any]:
        """Active test with its active questions, answers withheld"""
        cache_key = f"{PRACTICE_CACHE_PREFIX}test:{subcategory_id}"
        cached = await cache.get_json(cache_key)
        if cached is not None:
            return cached

        subcategory = await self._get_subcategory(subcategory_id)
        if subcategory.status != "active":
            raise NotFound("Practice subcategory", str(subcategory_id))

        result = await self.db.execute(
            select(PracticeQuestion)
            .where(PracticeQuestion.subcategory_id == subcategory_id, PracticeQuestion.status == "active")
            .order_by(PracticeQuestion.order_number.asc())
        )
        questions = [question_to_dict(q, include_answer=False) for q in result.scalars().all()]
        test = {"test": subcategory_to_dict(subcategory), "questions": questions, "total_questions": len(questions)}

        await cache.set_json(cache_key, test)
        return test
