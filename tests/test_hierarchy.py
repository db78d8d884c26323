# ============================================================================
# Content Hierarchy Service Tests
# ============================================================================
import pytest
from uuid import UUID, uuid4
from sqlalchemy import select, func

from portal.core.exceptions import Conflict, InvalidRequest, NotFound
from portal.models.curriculum import Exam, Subject, Unit, Chapter, Topic, SubTopic, Definition, ContentDetails
from portal.models.practice import PracticeCategory, PracticeSubCategory, PracticeQuestion
from portal.models.progress import ChapterProgress
from portal.services.content_service import ContentService
from portal.services.hierarchy import (
    HierarchyService, ancestor_fields, child_level, parent_field, parent_level
)

async def count(db, model, **filters) -> int:
    query = select(func.count(model.id))
    for field, value in filters.items():
        query = query.where(getattr(model, field) == value)
    return (await db.execute(query)).scalar()

class TestLevelHelpers:
    def test_parent_and_child(self):
        assert parent_level("exam") is None
        assert parent_level("chapter") == "unit"
        assert child_level("subtopic") == "definition"
        assert child_level("definition") is None

    def test_fields(self):
        assert parent_field("exam") is None
        assert parent_field("topic") == "chapter_id"
        assert ancestor_fields("topic") == ["exam_id", "subject_id", "unit_id", "chapter_id"]

class TestCreate:
    async def test_ancestors_are_derived_from_parent(self, db_session, content_tree):
        definition = await db_session.get(Definition, UUID(content_tree["definition"]))

        assert str(definition.exam_id) == content_tree["exam"]
        assert str(definition.unit_id) == content_tree["unit"]
        assert str(definition.topic_id) == content_tree["topic"]
        assert str(definition.subtopic_id) == content_tree["subtopic"]

    async def test_names_are_normalised(self, db_session, content_tree):
        exam = await db_session.get(Exam, UUID(content_tree["exam"]))
        subject = await db_session.get(Subject, UUID(content_tree["subject"]))

        assert exam.name == "JEE MAIN"
        assert exam.slug == "jee-main"
        assert subject.name == "Physics"

    async def test_order_numbers_are_assigned_in_sequence(self, db_session, content_tree):
        service = ContentService(db_session, "unit")
        second = await service.create_node({"name": "Optics", "subject_id": UUID(content_tree["subject"])})
        third = await service.create_node({"name": "Waves", "subject_id": UUID(content_tree["subject"])})

        assert second["order_number"] == 2
        assert third["order_number"] == 3

    async def test_duplicate_name_under_same_parent(self, db_session, content_tree):
        service = ContentService(db_session, "unit")

        with pytest.raises(Conflict):
            await service.create_node({"name": "MECHANICS", "subject_id": UUID(content_tree["subject"])})

    async def test_same_name_under_other_parent_is_allowed(self, db_session, content_tree):
        exam = await ContentService(db_session, "exam").create_node({"name": "NEET"})
        subject = await ContentService(db_session, "subject").create_node(
            {"name": "Physics", "exam_id": UUID(exam["id"])}
        )

        assert subject["slug"] == "physics"
        assert subject["exam_id"] == exam["id"]

    async def test_order_number_taken(self, db_session, content_tree):
        service = ContentService(db_session, "unit")

        with pytest.raises(Conflict):
            await service.create_node({"name": "Optics", "order_number": 1, "subject_id": UUID(content_tree["subject"])})

    async def test_missing_parent(self, db_session):
        with pytest.raises(NotFound):
            await ContentService(db_session, "subject").create_node({"name": "Physics", "exam_id": uuid4()})

    async def test_parent_required(self, db_session):
        with pytest.raises(InvalidRequest):
            await ContentService(db_session, "unit").create_node({"name": "Mechanics"})

    async def test_rename_regenerates_slug(self, db_session, content_tree):
        updated = await ContentService(db_session, "chapter").update_node(
            UUID(content_tree["chapter"]), {"name": "motion in a plane"}
        )

        assert updated["slug"] == "motion-in-a-plane"

class TestCascadingDelete:
    async def test_delete_chapter_removes_descendants_and_progress(self, db_session, content_tree, student):
        chapter_id = UUID(content_tree["chapter"])
        await ContentService(db_session, "topic").save_details(
            UUID(content_tree["topic"]), {"content": "<p>Intro</p>", "status": "publish"}
        )
        db_session.add(ChapterProgress(
            student_id=student.id, unit_id=UUID(content_tree["unit"]), chapter_id=chapter_id,
            progress=50, visited_topics=[], visited_subtopics=[], visited_definitions=[]
        ))
        await db_session.commit()

        result = await ContentService(db_session, "chapter").delete_node(chapter_id)

        assert result["deleted"]["chapters"] == 1
        assert result["deleted"]["topics"] == 1
        assert result["deleted"]["subtopics"] == 1
        assert result["deleted"]["definitions"] == 1
        assert result["deleted"]["details"] == 1
        assert result["deleted"]["progress"] == 1
        assert await count(db_session, Definition) == 0
        assert await count(db_session, ContentDetails) == 0
        assert await count(db_session, Unit) == 1

    async def test_delete_exam_removes_practice_tests(self, db_session, content_tree):
        exam_id = UUID(content_tree["exam"])
        category = PracticeCategory(exam_id=exam_id, name="Mock Tests", order_number=1)
        db_session.add(category)
        await db_session.flush()
        test = PracticeSubCategory(category_id=category.id, name="Mock 1", order_number=1)
        db_session.add(test)
        await db_session.flush()
        db_session.add(PracticeQuestion(
            subcategory_id=test.id, question="2 + 2?", option_a="3", option_b="4",
            option_c="5", option_d="6", answer="B", order_number=1
        ))
        await db_session.commit()

        result = await HierarchyService(db_session).delete("exam", exam_id)
        await db_session.commit()

        assert result["practice_categories"] == 1
        assert result["practice_subcategories"] == 1
        assert result["practice_questions"] == 1
        for model in (Exam, Subject, Unit, Chapter, Topic, SubTopic, Definition, PracticeQuestion):
            assert await count(db_session, model) == 0

    async def test_delete_unit_removes_linked_tests_only(self, db_session, content_tree):
        category = PracticeCategory(exam_id=UUID(content_tree["exam"]), name="Unit Tests", order_number=1)
        db_session.add(category)
        await db_session.flush()
        db_session.add_all([
            PracticeSubCategory(category_id=category.id, unit_id=UUID(content_tree["unit"]), name="Mechanics Test", order_number=1),
            PracticeSubCategory(category_id=category.id, name="General Test", order_number=2),
        ])
        await db_session.commit()

        result = await ContentService(db_session, "unit").delete_node(UUID(content_tree["unit"]))

        assert result["deleted"]["practice_subcategories"] == 1
        assert result["deleted"]["practice_categories"] == 0
        assert await count(db_session, PracticeSubCategory) == 1
        assert await count(db_session, PracticeCategory) == 1

    async def test_delete_missing(self, db_session):
        with pytest.raises(NotFound):
            await ContentService(db_session, "topic").delete_node(uuid4())

class TestCascadingStatus:
    async def test_deactivate_unit(self, db_session, content_tree):
        result = await ContentService(db_session, "unit").set_status(UUID(content_tree["unit"]), "inactive")

        assert result["updated"]["chapters"] == 1
        assert result["updated"]["definitions"] == 1
        assert await count(db_session, Definition, status="inactive") == 1
        assert await count(db_session, Subject, status="active") == 1

    async def test_draft_exam_hides_descendants(self, db_session, content_tree):
        await ContentService(db_session, "exam").set_status(UUID(content_tree["exam"]), "draft")

        assert await count(db_session, Exam, status="draft") == 1
        assert await count(db_session, Topic, status="inactive") == 1

    async def test_draft_not_allowed_below_exam(self, db_session, content_tree):
        with pytest.raises(InvalidRequest):
            await ContentService(db_session, "subject").set_status(UUID(content_tree["subject"]), "draft")

class TestReorder:
    async def test_swap_order_numbers(self, db_session, content_tree):
        service = ContentService(db_session, "unit")
        subject_id = UUID(content_tree["subject"])
        first = UUID(content_tree["unit"])
        second = UUID((await service.create_node({"name": "Optics", "subject_id": subject_id}))["id"])

        await service.reorder([
            {"id": first, "order_number": 2},
            {"id": second, "order_number": 1},
        ])

        listing = await service.list_nodes(filters={"subject_id": subject_id})
        assert [item["name"] for item in listing["items"]] == ["Optics", "Mechanics"]

    async def test_duplicate_ids(self, db_session, content_tree):
        unit_id = UUID(content_tree["unit"])

        with pytest.raises(InvalidRequest):
            await ContentService(db_session, "unit").reorder([
                {"id": unit_id, "order_number": 1},
                {"id": unit_id, "order_number": 2},
            ])

    async def test_mixed_parents(self, db_session, content_tree):
        exam = await ContentService(db_session, "exam").create_node({"name": "NEET"})
        subject = await ContentService(db_session, "subject").create_node({"name": "Biology", "exam_id": UUID(exam["id"])})

        with pytest.raises(InvalidRequest):
            await ContentService(db_session, "subject").reorder([
                {"id": UUID(content_tree["subject"]), "order_number": 2},
                {"id": UUID(subject["id"]), "order_number": 1},
            ])

    async def test_unknown_id(self, db_session, content_tree):
        with pytest.raises(NotFound):
            await ContentService(db_session, "unit").reorder([{"id": uuid4(), "order_number": 1}])
