# ============================================================================
# Student Account & Test Result Service
# ============================================================================
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFound, Conflict, AuthenticationFailed, PermissionDenied, InvalidRequest
from portal.core.security import get_password_hash, verify_password, create_student_token
from portal.models.practice import PracticeSubCategory, PracticeQuestion, StudentTestResult
from portal.models.user import Student, AccountStatus
from portal.services.lead_service import LeadService

logger = logging.getLogger(__name__)

MAX_RESULTS = 100

def student_to_dict(student: Student) -> Dict[str, Any]:
    return {
        "id": str(student.id),
        "first_name": student.first_name,
        "last_name": student.last_name,
        "full_name": student.full_name,
        "email": student.email,
        "phone_number": student.phone_number,
        "class_name": student.class_name,
        "prepared": student.prepared,
        "country": student.country,
        "status": student.status.value,
        "last_login": student.last_login.isoformat() if student.last_login else None,
        "lead_id": str(student.lead_id) if student.lead_id else None,
    }

def result_to_dict(result: StudentTestResult) -> Dict[str, Any]:
    return {
        "id": str(result.id),
        "test_id": str(result.test_id),
        "category_id": str(result.category_id) if result.category_id else None,
        "total_questions": result.total_questions,
        "correct": result.correct,
        "incorrect": result.incorrect,
        "unattempted": result.unattempted,
        "total_marks": result.total_marks,
        "maximum_marks": result.maximum_marks,
        "percentage": result.percentage,
        "time_taken": result.time_taken,
        "answers": result.answers or {},
        "question_results": result.question_results or [],
        "started_at": result.started_at.isoformat() if result.started_at else None,
        "submitted_at": result.submitted_at.isoformat() if result.submitted_at else None,
    }

def grade_answers(
    questions: List[PracticeQuestion],
    answers: Dict[str, Optional[str]],
    maximum_marks: float,
    negative_marks: float
) -> Dict[str, Any]:
    """
    Score a set of answers.

    Each question is worth ``maximum_marks / n`` (1 when the test has no
    maximum). A wrong answer costs ``negative_marks``; a blank costs nothing.
    The total is kept within [0, maximum].
    """
    n = len(questions)
    if maximum_marks and maximum_marks > 0:
        per_question = maximum_marks / n
        maximum = float(maximum_marks)
    else:
        per_question = 1.0
        maximum = float(n)

    correct = incorrect = unattempted = 0
    total = 0.0
    question_results = []
    for question in questions:
        selected = (answers.get(str(question.id)) or "").strip().upper() or None
        if selected is None:
            unattempted += 1
            is_correct = None
        elif selected == question.answer:
            correct += 1
            total += per_question
            is_correct = True
        else:
            incorrect += 1
            total -= negative_marks or 0
            is_correct = False
        question_results.append({
            "question_id": str(question.id),
            "selected": selected,
            "correct_answer": question.answer,
            "is_correct": is_correct,
        })

    total = round(min(max(total, 0.0), maximum), 2)
    percentage = round(min(max(total / maximum * 100, 0.0), 100.0), 2) if maximum else 0.0
    return {
        "total_questions": n,
        "correct": correct,
        "incorrect": incorrect,
        "unattempted": unattempted,
        "total_marks": total,
        "maximum_marks": maximum,
        "percentage": percentage,
        "question_results": question_results,
    }

class StudentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _by_email(self, email: str) -> Optional[Student]:
        result = await self.db.execute(select(Student).where(Student.email == email.strip().lower()))
        return result.scalar_one_or_none()

    # =========================================================================
    # Accounts
    # =========================================================================
    async def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a student account. The matching lead is created or refreshed
        and linked so that sign-ups show up in lead management.
        """
        email = data["email"].strip().lower()
        if await self._by_email(email):
            raise Conflict("A student with this email already exists")

        first_name = data["first_name"].strip()
        last_name = (data.get("last_name") or "").strip()
        lead_result = await LeadService(self.db).upsert_lead({
            "name": f"{first_name} {last_name}".strip(),
            "email": email,
            "country": data["country"],
            "class_name": data["class_name"],
            "phone_number": data["phone_number"],
            "prepared": data.get("prepared"),
            "source": "student_registration",
        }, commit=False)

        student = Student(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=get_password_hash(data["password"]),
            phone_number=data["phone_number"].strip(),
            class_name=data["class_name"].strip(),
            country=data["country"].strip(),
            prepared=data.get("prepared"),
            status=AccountStatus.ACTIVE,
            lead_id=lead_result["lead"].id,
            last_login=datetime.now(timezone.utc)
        )
        self.db.add(student)
        await self.db.commit()
        await self.db.refresh(student)

        logger.info(f"🎓 Student registered: {student.email}")
        return {"token": create_student_token(student.id), "student": student_to_dict(student)}

    async def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        student = await self._by_email(email)
        if not student or not verify_password(password, student.password_hash):
            raise AuthenticationFailed("Invalid email or password")
        if student.status != AccountStatus.ACTIVE:
            raise PermissionDenied("Account is inactive")

        student.last_login = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(student)

        logger.info(f"🎓 Student login: {student.email}")
        return {"token": create_student_token(student.id), "student": student_to_dict(student)}

    # =========================================================================
    # Test results
    # =========================================================================
    async def submit_test(self, student_id: UUID, test_id: UUID, submission: Dict[str, Any]) -> Dict[str, Any]:
        """Grade a practice test attempt. A resubmission replaces the previous result."""
        test = await self.db.get(PracticeSubCategory, test_id)
        if not test or test.status != "active":
            raise NotFound("Practice test", str(test_id))

        questions = list((await self.db.execute(
            select(PracticeQuestion)
            .where(PracticeQuestion.subcategory_id == test_id, PracticeQuestion.status == "active")
            .order_by(PracticeQuestion.order_number.asc())
        )).scalars().all())
        if not questions:
            raise InvalidRequest("This test has no questions")

        answers = {str(k): v for k, v in (submission.get("answers") or {}).items()}
        graded = grade_answers(questions, answers, test.maximum_marks, test.negative_marks)
        known = {str(q.id) for q in questions}

        existing = (await self.db.execute(
            select(StudentTestResult).where(
                StudentTestResult.student_id == student_id,
                StudentTestResult.test_id == test_id
            )
        )).scalar_one_or_none()
        result = existing or StudentTestResult(student_id=student_id, test_id=test_id)
        result.category_id = test.category_id
        for field, value in graded.items():
            setattr(result, field, value)
        result.answers = {k: v for k, v in answers.items() if k in known}
        result.time_taken = submission.get("time_taken") or 0
        result.started_at = submission.get("started_at")
        result.submitted_at = datetime.now(timezone.utc)
        if existing is None:
            self.db.add(result)

        await self.db.commit()
        await self.db.refresh(result)

        logger.info(
            f"📝 Student {student_id} scored {result.total_marks}/{result.maximum_marks} "
            f"({result.percentage}%) on test {test_id}"
        )
        return result_to_dict(result)

    async def list_results(self, student_id: UUID) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(StudentTestResult)
            .where(StudentTestResult.student_id == student_id)
            .order_by(StudentTestResult.submitted_at.desc())
            .limit(MAX_RESULTS)
        )
        return [result_to_dict(r) for r in result.scalars().all()]

    async def get_result(self, student_id: UUID, test_id: UUID) -> Dict[str, Any]:
        row = (await self.db.execute(
            select(StudentTestResult).where(
                StudentTestResult.student_id == student_id,
                StudentTestResult.test_id == test_id
            )
        )).scalar_one_or_none()
        if not row:
            raise NotFound("Test result", str(test_id))
        return result_to_dict(row)
