# ============================================================================
# Student Account, Test Result & Progress Tests
# ============================================================================
import pytest
from types import SimpleNamespace
from uuid import UUID, uuid4
from httpx import AsyncClient

from portal.core.exceptions import InvalidRequest
from portal.services.content_service import ContentService
from portal.services.practice_service import PracticeService
from portal.services.progress_service import ProgressService, clamp_percent, round_half_up
from portal.services.student_service import grade_answers

API = "/api/v1/students"

REGISTRATION = {
    "first_name": "Neha",
    "last_name": "Singh",
    "email": "Neha@Example.com",
    "password": "neha1234",
    "phone_number": "+919833333333",
    "class_name": "Class 12",
    "country": "India",
    "prepared": "NEET",
}

def question(answer: str):
    return SimpleNamespace(id=uuid4(), answer=answer)

class TestGrading:
    def test_marks_split_evenly(self):
        questions = [question("A"), question("B"), question("C"), question("D")]
        answers = {str(questions[0].id): "a", str(questions[1].id): "B", str(questions[2].id): "A"}

        graded = grade_answers(questions, answers, maximum_marks=8, negative_marks=0.5)

        assert graded["correct"] == 2
        assert graded["incorrect"] == 1
        assert graded["unattempted"] == 1
        assert graded["total_marks"] == 3.5
        assert graded["maximum_marks"] == 8
        assert graded["percentage"] == 43.75

    def test_no_maximum_means_one_mark_each(self):
        questions = [question("A"), question("B")]

        graded = grade_answers(questions, {str(questions[0].id): "A"}, maximum_marks=0, negative_marks=0)

        assert graded["total_marks"] == 1
        assert graded["maximum_marks"] == 2
        assert graded["percentage"] == 50

    def test_total_never_negative(self):
        questions = [question("A"), question("B")]
        answers = {str(q.id): "D" for q in questions}

        graded = grade_answers(questions, answers, maximum_marks=2, negative_marks=1)

        assert graded["total_marks"] == 0
        assert graded["percentage"] == 0

    def test_per_question_results(self):
        questions = [question("C")]

        graded = grade_answers(questions, {str(questions[0].id): " c "}, maximum_marks=4, negative_marks=1)

        assert graded["question_results"][0]["selected"] == "C"
        assert graded["question_results"][0]["is_correct"] is True

class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(33.49) == 33

    def test_clamped(self):
        assert clamp_percent(120) == 100
        assert clamp_percent(-3) == 0

class TestStudentAccounts:
    async def test_register_creates_linked_lead(self, client: AsyncClient, admin_headers):
        response = await client.post(f"{API}/register", json=REGISTRATION)

        assert response.status_code == 201
        body = response.json()
        assert body["token"]
        assert body["student"]["email"] == "neha@example.com"
        assert body["student"]["lead_id"]

        lead = (await client.get(f"/api/v1/leads/{body['student']['lead_id']}", headers=admin_headers)).json()
        assert lead["source"] == "student_registration"
        assert lead["name"] == "Neha Singh"

    async def test_register_refreshes_existing_lead(self, client: AsyncClient, admin_headers):
        await client.post("/api/v1/leads", json={
            "name": "Neha", "email": "neha@example.com", "country": "India",
            "class_name": "Class 11", "phone_number": "+919833333333",
        })

        body = (await client.post(f"{API}/register", json=REGISTRATION)).json()

        lead = (await client.get(f"/api/v1/leads/{body['student']['lead_id']}", headers=admin_headers)).json()
        assert lead["status"] == "updated"
        assert lead["class_name"] == "Class 12"

    async def test_duplicate_email(self, client: AsyncClient):
        await client.post(f"{API}/register", json=REGISTRATION)

        response = await client.post(f"{API}/register", json=REGISTRATION)

        assert response.status_code == 409

    async def test_login_and_me(self, client: AsyncClient):
        await client.post(f"{API}/register", json=REGISTRATION)

        response = await client.post(f"{API}/login", json={"email": "neha@example.com", "password": "neha1234"})
        assert response.status_code == 200

        me = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {response.json()['token']}"})
        assert me.status_code == 200
        assert me.json()["full_name"] == "Neha Singh"

    async def test_wrong_password(self, client: AsyncClient):
        await client.post(f"{API}/register", json=REGISTRATION)

        response = await client.post(f"{API}/login", json={"email": "neha@example.com", "password": "wrongpass"})

        assert response.status_code == 401

    async def test_staff_token_is_not_a_student_token(self, client: AsyncClient, admin_headers):
        response = await client.get(f"{API}/me", headers=admin_headers)

        assert response.status_code == 401

@pytest.fixture
async def graded_test(db_session, content_tree):
    """A four-mark test with two questions (answers A and B)"""
    service = PracticeService(db_session)
    category = await service.create_category({"exam_id": UUID(content_tree["exam"]), "name": "Quizzes"})
    test = await service.create_subcategory({
        "category_id": UUID(category["id"]), "name": "Quiz 1", "maximum_marks": 4, "negative_marks": 1,
    })
    ids = []
    for answer in ("A", "B"):
        created = await service.create_question({
            "subcategory_id": UUID(test["id"]), "question": f"Pick {answer}",
            "option_a": "A", "option_b": "B", "option_c": "C", "option_d": "D", "answer": answer,
        })
        ids.append(created["id"])
    return {"test_id": test["id"], "question_ids": ids}

class TestResults:
    async def test_submit_and_fetch(self, client: AsyncClient, student_headers, graded_test):
        first, second = graded_test["question_ids"]
        response = await client.post(
            f"{API}/me/results/{graded_test['test_id']}",
            json={"answers": {first: "A", second: "C"}, "time_taken": 120},
            headers=student_headers
        )

        assert response.status_code == 200
        result = response.json()
        assert result["correct"] == 1
        assert result["incorrect"] == 1
        assert result["total_marks"] == 1
        assert result["percentage"] == 25
        assert result["time_taken"] == 120

        fetched = await client.get(f"{API}/me/results/{graded_test['test_id']}", headers=student_headers)
        assert fetched.json()["id"] == result["id"]

    async def test_resubmission_replaces_result(self, client: AsyncClient, student_headers, graded_test):
        first, second = graded_test["question_ids"]
        url = f"{API}/me/results/{graded_test['test_id']}"
        await client.post(url, json={"answers": {first: "D"}}, headers=student_headers)

        response = await client.post(url, json={"answers": {first: "A", second: "B"}}, headers=student_headers)

        assert response.json()["percentage"] == 100
        results = (await client.get(f"{API}/me/results", headers=student_headers)).json()["results"]
        assert len(results) == 1

    async def test_unknown_question_ids_are_ignored(self, client: AsyncClient, student_headers, graded_test):
        response = await client.post(
            f"{API}/me/results/{graded_test['test_id']}",
            json={"answers": {str(uuid4()): "A"}},
            headers=student_headers
        )

        assert response.json()["unattempted"] == 2
        assert response.json()["answers"] == {}

    async def test_submit_requires_student(self, client: AsyncClient, graded_test):
        response = await client.post(f"{API}/me/results/{graded_test['test_id']}", json={"answers": {}})

        assert response.status_code == 401

    async def test_missing_result(self, client: AsyncClient, student_headers, graded_test):
        response = await client.get(f"{API}/me/results/{graded_test['test_id']}", headers=student_headers)

        assert response.status_code == 404

    async def test_empty_test(self, client: AsyncClient, student_headers, db_session, content_tree):
        service = PracticeService(db_session)
        category = await service.create_category({"exam_id": UUID(content_tree["exam"]), "name": "Empty"})
        test = await service.create_subcategory({"category_id": UUID(category["id"]), "name": "Nothing"})

        response = await client.post(f"{API}/me/results/{test['id']}", json={"answers": {}}, headers=student_headers)

        assert response.status_code == 400

class TestProgress:
    """Chapter page = 1 item, plus topic, subtopic and definition = 4 items"""

    async def test_chapter_visit(self, client: AsyncClient, student_headers, content_tree):
        response = await client.post(
            f"{API}/me/progress/visit",
            json={"chapter_id": content_tree["chapter"], "item_type": "chapter"},
            headers=student_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["chapter"]["progress"] == 25
        assert body["unit"]["progress"] == 25
        assert body["subject"]["progress"] == 25
        assert body["show_congratulations"]["chapter"] is False

    async def test_full_chapter_completes_everything(self, client: AsyncClient, student_headers, content_tree):
        visits = [
            {"item_type": "chapter"},
            {"item_type": "topic", "item_id": content_tree["topic"]},
            {"item_type": "subtopic", "item_id": content_tree["subtopic"]},
            {"item_type": "definition", "item_id": content_tree["definition"]},
        ]
        for visit in visits:
            response = await client.post(
                f"{API}/me/progress/visit",
                json={"chapter_id": content_tree["chapter"], **visit},
                headers=student_headers
            )

        body = response.json()
        assert body["chapter"]["progress"] == 100
        assert body["chapter"]["is_completed"] is True
        assert body["show_congratulations"] == {"chapter": True, "unit": True, "subject": True}

        await client.post(
            f"{API}/me/progress/congratulations",
            json={"level": "chapter", "id": content_tree["chapter"]},
            headers=student_headers
        )
        units = (await client.get(f"{API}/me/progress", headers=student_headers)).json()["units"]
        assert units[0]["chapters"][0]["congratulations_shown"] is True

    async def test_repeat_visit_counts_once(self, client: AsyncClient, student_headers, content_tree):
        payload = {"chapter_id": content_tree["chapter"], "item_type": "topic", "item_id": content_tree["topic"]}
        await client.post(f"{API}/me/progress/visit", json=payload, headers=student_headers)

        response = await client.post(f"{API}/me/progress/visit", json=payload, headers=student_headers)

        assert response.json()["chapter"]["visited_topics"] == [content_tree["topic"]]
        assert response.json()["chapter"]["progress"] == 25

    async def test_item_from_other_chapter(self, client: AsyncClient, student_headers, db_session, content_tree):
        other = await ContentService(db_session, "chapter").create_node(
            {"name": "Dynamics", "unit_id": UUID(content_tree["unit"])}
        )

        response = await client.post(
            f"{API}/me/progress/visit",
            json={"chapter_id": other["id"], "item_type": "topic", "item_id": content_tree["topic"]},
            headers=student_headers
        )

        assert response.status_code == 400

    async def test_unit_averages_active_chapters(self, client: AsyncClient, student_headers, db_session, content_tree):
        await ContentService(db_session, "chapter").create_node({"name": "Dynamics", "unit_id": UUID(content_tree["unit"])})

        response = await client.put(
            f"{API}/me/progress",
            json={"chapters": [{"chapter_id": content_tree["chapter"], "manual_progress": 75}]},
            headers=student_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["chapters"][0]["progress"] == 75
        assert body["chapters"][0]["is_manual_override"] is True
        assert body["units"][0]["progress"] == 38
        assert body["subjects"][0]["progress"] == 38

    async def test_clearing_override_restores_visits(self, client: AsyncClient, student_headers, content_tree):
        await client.post(
            f"{API}/me/progress/visit",
            json={"chapter_id": content_tree["chapter"], "item_type": "chapter"},
            headers=student_headers
        )
        await client.put(
            f"{API}/me/progress",
            json={"chapters": [{"chapter_id": content_tree["chapter"], "manual_progress": 100}]},
            headers=student_headers
        )

        response = await client.put(
            f"{API}/me/progress",
            json={"chapters": [{"chapter_id": content_tree["chapter"], "manual_progress": None}]},
            headers=student_headers
        )

        assert response.json()["chapters"][0]["progress"] == 25
        assert response.json()["chapters"][0]["is_manual_override"] is False

    async def test_recalculate_after_content_change(self, db_session, student, content_tree):
        service = ProgressService(db_session)
        await service.track_visit(student.id, UUID(content_tree["chapter"]), "chapter")
        await ContentService(db_session, "topic").set_status(UUID(content_tree["topic"]), "inactive")

        result = await service.calculate(student.id, UUID(content_tree["chapter"]))

        assert result["chapter"]["progress"] == 100

    async def test_calculate_without_row(self, client: AsyncClient, student_headers, content_tree):
        response = await client.post(
            f"{API}/me/progress/chapters/{content_tree['chapter']}/calculate", headers=student_headers
        )

        assert response.status_code == 404

    async def test_subject_progress_defaults(self, client: AsyncClient, student_headers, content_tree):
        response = await client.get(f"{API}/me/progress/subjects/{content_tree['subject']}", headers=student_headers)

        assert response.status_code == 200
        assert response.json() == {
            "subject_id": content_tree["subject"],
            "progress": 0,
            "congratulations_shown": False,
        }

    async def test_progress_listing_by_unit(self, client: AsyncClient, student_headers, db_session, content_tree):
        optics = await ContentService(db_session, "unit").create_node(
            {"name": "Optics", "subject_id": UUID(content_tree["subject"])}
        )
        reflection = await ContentService(db_session, "chapter").create_node(
            {"name": "Reflection", "unit_id": UUID(optics["id"])}
        )
        for chapter_id in (content_tree["chapter"], reflection["id"]):
            await client.post(
                f"{API}/me/progress/visit",
                json={"chapter_id": chapter_id, "item_type": "chapter"},
                headers=student_headers
            )

        everything = (await client.get(f"{API}/me/progress", headers=student_headers)).json()["units"]
        only_optics = (await client.get(
            f"{API}/me/progress", params={"unit_id": optics["id"]}, headers=student_headers
        )).json()["units"]

        assert {u["unit_id"] for u in everything} == {content_tree["unit"], optics["id"]}
        assert len(only_optics) == 1
        assert only_optics[0]["progress"] == 100
        assert [c["chapter_id"] for c in only_optics[0]["chapters"]] == [reflection["id"]]

class TestCongratulations:
    async def test_unit_without_progress(self, client: AsyncClient, student_headers, content_tree):
        response = await client.post(
            f"{API}/me/progress/congratulations",
            json={"level": "unit", "id": content_tree["unit"]},
            headers=student_headers
        )

        assert response.status_code == 200
        assert response.json()["congratulations_shown"] is True
        units = (await client.get(f"{API}/me/progress", headers=student_headers)).json()["units"]
        assert units[0]["unit_id"] == content_tree["unit"]
        assert units[0]["progress"] == 0
        assert units[0]["congratulations_shown"] is True

    async def test_subject_flag(self, client: AsyncClient, student_headers, content_tree):
        await client.post(
            f"{API}/me/progress/congratulations",
            json={"level": "subject", "id": content_tree["subject"]},
            headers=student_headers
        )

        response = await client.get(f"{API}/me/progress/subjects/{content_tree['subject']}", headers=student_headers)

        assert response.json()["congratulations_shown"] is True
        assert response.json()["progress"] == 0

    async def test_unknown_unit(self, client: AsyncClient, student_headers, content_tree):
        response = await client.post(
            f"{API}/me/progress/congratulations",
            json={"level": "unit", "id": str(uuid4())},
            headers=student_headers
        )

        assert response.status_code == 404

    async def test_unknown_level(self, client: AsyncClient, student_headers, content_tree):
        response = await client.post(
            f"{API}/me/progress/congratulations",
            json={"level": "topic", "id": content_tree["topic"]},
            headers=student_headers
        )

        assert response.status_code == 422

    async def test_service_rejects_unknown_level(self, db_session, student, content_tree):
        with pytest.raises(InvalidRequest):
            await ProgressService(db_session).mark_congratulations(student.id, "topic", UUID(content_tree["topic"]))
