import json

import httpx
import pytest

from iaschool.main import app
from iaschool.routers.gallery import get_vision_transport
from iaschool.services.vision_service import VisionServiceException, parse_recognition

from .factories import auth_headers, create_group, create_student

BASE = "/api/v1/gallery"


def vision_answer(content, status_code=200):
    def handler(request):
        if status_code != 200:
            return httpx.Response(status_code, text="upstream error")
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})
    return httpx.MockTransport(handler)


async def create_album(client, user, **extra):
    payload = {"title": "Festival de primavera", "event_date": "2030-03-21T10:00:00Z"}
    payload.update(extra)
    response = await client.post(f"{BASE}/albums", json=payload, headers=auth_headers(user))
    assert response.status_code == 201, response.text
    return response.json()


async def add_photos(client, user, album_id, *urls):
    response = await client.post(
        f"{BASE}/albums/{album_id}/photos",
        json={"photos": [{"url": url, "thumbnail_url": f"{url}?thumb=1"} for url in urls]},
        headers=auth_headers(user)
    )
    assert response.status_code == 201, response.text
    return response.json()["items"]


class TestParseRecognition:
    def test_code_fences(self):
        answer = '```json\n{"recognized": [{"student_id": "abc", "confidence": 0.92}]}\n```'
        assert parse_recognition(answer) == [{"student_id": "abc", "confidence": 0.92}]

    def test_confidence_is_clamped(self):
        answer = json.dumps({"recognized": [
            {"student_id": "a", "confidence": 1.7},
            {"student_id": "b", "confidence": -2},
            {"student_id": "c", "confidence": "alta"},
            {"confidence": 0.9},
        ]})
        assert parse_recognition(answer) == [
            {"student_id": "a", "confidence": 1.0},
            {"student_id": "b", "confidence": 0.0},
            {"student_id": "c", "confidence": 0.5},
        ]

    def test_text_around_json(self):
        answer = 'Claro, aquí está: {"students": [{"student_id": "x"}]} Saludos'
        assert parse_recognition(answer) == [{"student_id": "x", "confidence": 0.5}]

    def test_garbage(self):
        with pytest.raises(VisionServiceException):
            parse_recognition("no students found")


class TestAlbums:
    async def test_visibility(self, client, teacher, parent, other_parent, group, tutor_link):
        public = await create_album(client, teacher)
        grouped = await create_album(client, teacher, title="Salón 1A", visibility="GROUP_ONLY", group_id=str(group.id))

        mine = await client.get(f"{BASE}/albums", headers=auth_headers(parent))
        assert {a["id"] for a in mine.json()["items"]} == {public["id"], grouped["id"]}

        theirs = await client.get(f"{BASE}/albums", headers=auth_headers(other_parent))
        assert [a["id"] for a in theirs.json()["items"]] == [public["id"]]

        hidden = await client.get(f"{BASE}/albums/{grouped['id']}", headers=auth_headers(other_parent))
        assert hidden.status_code == 404

    async def test_group_only_needs_group(self, client, teacher):
        response = await client.post(
            f"{BASE}/albums", json={"title": "Salón", "visibility": "GROUP_ONLY"}, headers=auth_headers(teacher)
        )
        assert response.status_code == 400

    async def test_parents_cannot_create(self, client, parent):
        response = await client.post(f"{BASE}/albums", json={"title": "Mis fotos"}, headers=auth_headers(parent))
        assert response.status_code == 403

    async def test_photos_set_cover_and_order(self, client, teacher):
        album = await create_album(client, teacher)
        photos = await add_photos(client, teacher, album["id"], "https://cdn.iaschool.mx/1.jpg", "https://cdn.iaschool.mx/2.jpg")
        assert [p["order"] for p in photos] == [0, 1]

        detail = (await client.get(f"{BASE}/albums/{album['id']}", headers=auth_headers(teacher))).json()
        assert detail["photo_count"] == 2
        assert detail["cover_url"] == "https://cdn.iaschool.mx/1.jpg?thumb=1"

        await client.delete(f"{BASE}/photos/{photos[0]['id']}", headers=auth_headers(teacher))
        detail = (await client.get(f"{BASE}/albums/{album['id']}", headers=auth_headers(teacher))).json()
        assert detail["photo_count"] == 1
        assert detail["cover_url"] == "https://cdn.iaschool.mx/2.jpg?thumb=1"
        assert [p["url"] for p in detail["photos"]] == ["https://cdn.iaschool.mx/2.jpg"]


class TestTagging:
    @pytest.fixture
    async def photographed(self, db, school, group, student):
        student.photo_url = "https://cdn.iaschool.mx/perfiles/ana.jpg"
        await db.commit()
        return student

    async def test_analyze_creates_tags(self, client, teacher, group, photographed):
        album = await create_album(client, teacher, visibility="GROUP_ONLY", group_id=str(group.id))
        photo = (await add_photos(client, teacher, album["id"], "https://cdn.iaschool.mx/3.jpg"))[0]

        answer = json.dumps({"recognized": [
            {"student_id": str(photographed.id), "confidence": 0.88},
            {"student_id": "not-a-student", "confidence": 0.99},
        ]})
        app.dependency_overrides[get_vision_transport] = lambda: vision_answer(f"```json\n{answer}\n```")

        response = await client.post(f"{BASE}/photos/{photo['id']}/analyze", headers=auth_headers(teacher))
        assert response.status_code == 200
        data = response.json()
        assert data["is_processed"] is True
        assert [(t["student_name"], t["confidence"], t["is_manual"]) for t in data["tags"]] == [("Ana López", 0.88, False)]

        again = await client.post(f"{BASE}/photos/{photo['id']}/analyze", headers=auth_headers(teacher))
        assert len(again.json()["tags"]) == 1

    async def test_analyze_without_reference_photos(self, client, teacher, student):
        album = await create_album(client, teacher)
        photo = (await add_photos(client, teacher, album["id"], "https://cdn.iaschool.mx/4.jpg"))[0]

        response = await client.post(f"{BASE}/photos/{photo['id']}/analyze", headers=auth_headers(teacher))
        assert response.status_code == 400
        assert response.json()["detail"]["needs_profiles"] is True

    async def test_vision_failure(self, client, teacher, photographed):
        album = await create_album(client, teacher)
        photo = (await add_photos(client, teacher, album["id"], "https://cdn.iaschool.mx/5.jpg"))[0]
        app.dependency_overrides[get_vision_transport] = lambda: vision_answer("", status_code=503)

        response = await client.post(f"{BASE}/photos/{photo['id']}/analyze", headers=auth_headers(teacher))
        assert response.status_code == 502
        assert response.json()["detail"]["service"] == "vision"

    async def test_manual_tag_and_student_photos(self, client, db, school, teacher, parent, other_parent, student, tutor_link):
        album = await create_album(client, teacher)
        photo = (await add_photos(client, teacher, album["id"], "https://cdn.iaschool.mx/6.jpg"))[0]
        url = f"{BASE}/photos/{photo['id']}/tags"

        tag = await client.post(url, json={"student_id": str(student.id)}, headers=auth_headers(teacher))
        assert tag.status_code == 201
        assert tag.json()["is_manual"] is True
        assert tag.json()["confidence"] == 1.0

        duplicate = await client.post(url, json={"student_id": str(student.id)}, headers=auth_headers(teacher))
        assert duplicate.status_code == 409

        photos = await client.get(f"{BASE}/students/{student.id}/photos", headers=auth_headers(parent))
        assert [p["id"] for p in photos.json()["items"]] == [photo["id"]]

        stranger = await client.get(f"{BASE}/students/{student.id}/photos", headers=auth_headers(other_parent))
        assert stranger.status_code == 400

        sibling = await create_student(db, school, first_name="Luis")
        none = await client.get(f"{BASE}/students/{sibling.id}/photos", headers=auth_headers(teacher))
        assert none.json()["total"] == 0

    async def test_remove_tag(self, client, teacher, student):
        album = await create_album(client, teacher)
        photo = (await add_photos(client, teacher, album["id"], "https://cdn.iaschool.mx/7.jpg"))[0]
        tag = (await client.post(
            f"{BASE}/photos/{photo['id']}/tags", json={"student_id": str(student.id)}, headers=auth_headers(teacher)
        )).json()

        response = await client.delete(f"{BASE}/photos/{photo['id']}/tags/{tag['id']}", headers=auth_headers(teacher))
        assert response.status_code == 200
        missing = await client.delete(f"{BASE}/photos/{photo['id']}/tags/{tag['id']}", headers=auth_headers(teacher))
        assert missing.status_code == 404

    async def test_student_photos_respect_album_visibility(self, client, db, school, teacher, parent, student, tutor_link):
        other_group = await create_group(db, school, name="2B")
        public = await create_album(client, teacher)
        private = await create_album(client, teacher, title="Borradores", visibility="PRIVATE")
        elsewhere = await create_album(client, teacher, title="Salón 2B", visibility="GROUP_ONLY", group_id=str(other_group.id))

        photo_ids = {}
        for album in (public, private, elsewhere):
            photo = (await add_photos(client, teacher, album["id"], f"https://cdn.iaschool.mx/{album['id']}.jpg"))[0]
            await client.post(
                f"{BASE}/photos/{photo['id']}/tags", json={"student_id": str(student.id)}, headers=auth_headers(teacher)
            )
            photo_ids[album["id"]] = photo["id"]

        mine = await client.get(f"{BASE}/students/{student.id}/photos", headers=auth_headers(parent))
        assert [p["id"] for p in mine.json()["items"]] == [photo_ids[public["id"]]]

        creator = await client.get(f"{BASE}/students/{student.id}/photos", headers=auth_headers(teacher))
        assert creator.json()["total"] == 3
