# ============================================================================
# Content, Tree & Browse Endpoint Tests
# ============================================================================
import pytest
from httpx import AsyncClient

from portal.models.user import UserRole, AccountStatus

API = "/api/v1"

class TestContentCrud:
    """Tests for the per-level content endpoints"""

    async def test_create_and_get_exam(self, client: AsyncClient, admin_headers):
        response = await client.post(f"{API}/exams", json={"name": "neet ug"}, headers=admin_headers)

        assert response.status_code == 201
        exam = response.json()
        assert exam["name"] == "NEET UG"
        assert exam["slug"] == "neet-ug"
        assert exam["order_number"] == 1
        assert exam["content_info"]["has_content"] is False

        response = await client.get(f"{API}/exams/{exam['id']}")
        assert response.status_code == 200
        assert response.json()["id"] == exam["id"]

    async def test_create_child_with_parent_only(self, client: AsyncClient, admin_headers, content_tree):
        response = await client.post(
            f"{API}/topics",
            json={"name": "relative motion", "chapter_id": content_tree["chapter"]},
            headers=admin_headers
        )

        assert response.status_code == 201
        topic = response.json()
        assert topic["exam_id"] == content_tree["exam"]
        assert topic["unit_id"] == content_tree["unit"]
        assert topic["order_number"] == 2

    async def test_duplicate_name_conflict(self, client: AsyncClient, admin_headers, content_tree):
        response = await client.post(
            f"{API}/subjects",
            json={"name": "Physics", "exam_id": content_tree["exam"]},
            headers=admin_headers
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    async def test_blank_name_on_update(self, client: AsyncClient, admin_headers, content_tree):
        response = await client.put(
            f"{API}/subjects/{content_tree['subject']}", json={"name": "   "}, headers=admin_headers
        )

        assert response.status_code == 422
        subject = (await client.get(f"{API}/subjects/{content_tree['subject']}")).json()
        assert subject["name"] == "Physics"
        assert subject["slug"] == "physics"

    async def test_list_filters(self, client: AsyncClient, admin_headers, content_tree):
        await client.post(
            f"{API}/units",
            json={"name": "Optics", "subject_id": content_tree["subject"], "status": "inactive"},
            headers=admin_headers
        )

        active = (await client.get(f"{API}/units", params={"subject_id": content_tree["subject"]})).json()
        everything = (await client.get(f"{API}/units", params={"status": "all"})).json()
        searched = (await client.get(f"{API}/units", params={"status": "all", "search": "opt"})).json()

        assert active["total"] == 1
        assert everything["total"] == 2
        assert [u["name"] for u in searched["items"]] == ["Optics"]

    async def test_chapter_fields(self, client: AsyncClient, admin_headers, content_tree):
        response = await client.put(
            f"{API}/chapters/{content_tree['chapter']}",
            json={"weightage": 12, "time": 90, "questions": 3},
            headers=admin_headers
        )

        assert response.status_code == 200
        chapter = response.json()
        assert chapter["weightage"] == 12
        assert chapter["time"] == 90
        assert chapter["questions"] == 3

    async def test_weightage_out_of_range(self, client: AsyncClient, admin_headers, content_tree):
        response = await client.put(
            f"{API}/chapters/{content_tree['chapter']}",
            json={"weightage": 150},
            headers=admin_headers
        )

        assert response.status_code == 422

    async def test_status_cascade(self, client: AsyncClient, admin_headers, content_tree):
        response = await client.patch(
            f"{API}/subjects/{content_tree['subject']}/status",
            json={"status": "Inactive"},
            headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["updated"]["units"] == 1
        assert (await client.get(f"{API}/definitions")).json()["total"] == 0

    async def test_invalid_status(self, client: AsyncClient, admin_headers, content_tree):
        response = await client.patch(
            f"{API}/units/{content_tree['unit']}/status",
            json={"status": "archived"},
            headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_STATUS"

    async def test_reorder(self, client: AsyncClient, admin_headers, content_tree):
        second = (await client.post(
            f"{API}/units",
            json={"name": "Optics", "subject_id": content_tree["subject"]},
            headers=admin_headers
        )).json()

        response = await client.patch(
            f"{API}/units/reorder",
            json={"items": [
                {"id": content_tree["unit"], "order_number": 2},
                {"id": second["id"], "order_number": 1},
            ]},
            headers=admin_headers
        )

        assert response.status_code == 200
        names = [u["name"] for u in (await client.get(f"{API}/units")).json()["items"]]
        assert names == ["Optics", "Mechanics"]

    async def test_delete_cascades(self, client: AsyncClient, admin_headers, content_tree):
        response = await client.delete(f"{API}/units/{content_tree['unit']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["deleted"]["definitions"] == 1
        assert (await client.get(f"{API}/chapters/{content_tree['chapter']}")).status_code == 404

class TestDetails:
    async def test_defaults_when_missing(self, client: AsyncClient, content_tree):
        response = await client.get(f"{API}/chapters/{content_tree['chapter']}/details")

        assert response.status_code == 200
        details = response.json()
        assert details["exists"] is False
        assert details["status"] == "draft"

    async def test_save_and_delete(self, client: AsyncClient, admin_headers, content_tree):
        url = f"{API}/chapters/{content_tree['chapter']}/details"
        response = await client.put(
            url,
            json={"content": "<h1>Kinematics</h1>", "title": "Kinematics Notes", "status": "publish"},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["exists"] is True

        chapter = (await client.get(f"{API}/chapters/{content_tree['chapter']}")).json()
        assert chapter["content_info"]["has_content"] is True

        assert (await client.delete(url, headers=admin_headers)).status_code == 200
        assert (await client.delete(url, headers=admin_headers)).status_code == 404

    async def test_invalid_details_status(self, client: AsyncClient, admin_headers, content_tree):
        response = await client.put(
            f"{API}/chapters/{content_tree['chapter']}/details",
            json={"status": "live"},
            headers=admin_headers
        )

        assert response.status_code == 422

class TestRolePermissions:
    """Writes are allowed according to the role and the HTTP method"""

    async def test_viewer_is_read_only(self, client: AsyncClient, create_staff, headers_for, content_tree):
        viewer = await create_staff(UserRole.VIEWER)

        response = await client.put(
            f"{API}/units/{content_tree['unit']}", json={"name": "Statics"}, headers=headers_for(viewer)
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"

    async def test_editor_can_update_but_not_create_or_delete(self, client: AsyncClient, create_staff, headers_for, content_tree):
        headers = headers_for(await create_staff(UserRole.EDITOR))

        update = await client.put(f"{API}/units/{content_tree['unit']}", json={"name": "Statics"}, headers=headers)
        create = await client.post(
            f"{API}/units", json={"name": "Optics", "subject_id": content_tree["subject"]}, headers=headers
        )
        delete = await client.delete(f"{API}/units/{content_tree['unit']}", headers=headers)

        assert update.status_code == 200
        assert create.status_code == 403
        assert delete.status_code == 403

    async def test_moderator_can_delete(self, client: AsyncClient, create_staff, headers_for, content_tree):
        headers = headers_for(await create_staff(UserRole.MODERATOR))

        response = await client.delete(f"{API}/definitions/{content_tree['definition']}", headers=headers)

        assert response.status_code == 200

    async def test_inactive_staff_is_rejected(self, client: AsyncClient, create_staff, headers_for):
        user = await create_staff(UserRole.ADMIN, email="gone@prepkart.in", status=AccountStatus.INACTIVE)

        response = await client.post(f"{API}/exams", json={"name": "CAT"}, headers=headers_for(user))

        assert response.status_code == 403

class TestTreeAndBrowse:
    async def test_tree_nesting(self, client: AsyncClient, content_tree):
        response = await client.get(f"{API}/tree")

        assert response.status_code == 200
        exams = response.json()["exams"]
        assert len(exams) == 1
        subtopics = exams[0]["subjects"][0]["units"][0]["chapters"][0]["topics"][0]["subtopics"]
        assert subtopics[0]["name"] == "Velocity"
        assert "definitions" not in subtopics[0]

    async def test_tree_hides_inactive(self, client: AsyncClient, admin_headers, content_tree):
        await client.patch(
            f"{API}/chapters/{content_tree['chapter']}/status", json={"status": "inactive"}, headers=admin_headers
        )

        tree = (await client.get(f"{API}/tree")).json()["exams"]
        assert tree[0]["subjects"][0]["units"][0]["chapters"] == []

        full = (await client.get(f"{API}/tree", params={"status": "all"})).json()["exams"]
        assert len(full[0]["subjects"][0]["units"][0]["chapters"]) == 1

    async def test_browse_by_slugs(self, client: AsyncClient, admin_headers, content_tree):
        await client.put(
            f"{API}/units/{content_tree['unit']}/details",
            json={"content": "<p>Forces and motion</p>", "status": "publish"},
            headers=admin_headers
        )

        response = await client.get(f"{API}/browse/jee-main/physics/mechanics")

        assert response.status_code == 200
        page = response.json()
        assert page["level"] == "unit"
        assert [b["slug"] for b in page["breadcrumb"]] == ["jee-main", "physics", "mechanics"]
        assert page["details"]["content"] == "<p>Forces and motion</p>"
        assert page["children_level"] == "chapter"
        assert page["children"][0]["slug"] == "kinematics"

    async def test_browse_hides_unpublished_details(self, client: AsyncClient, admin_headers, content_tree):
        await client.put(
            f"{API}/subjects/{content_tree['subject']}/details",
            json={"content": "draft text", "status": "draft"},
            headers=admin_headers
        )

        page = (await client.get(f"{API}/browse/jee-main/physics")).json()
        assert page["details"] is None

    async def test_browse_unknown_slug(self, client: AsyncClient, content_tree):
        response = await client.get(f"{API}/browse/jee-main/chemistry")

        assert response.status_code == 404
