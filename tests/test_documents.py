from .factories import auth_headers, link_tutor


async def create_document(client, admin, **extra):
    payload = {"title": "Permiso excursión", "content": "Autorizo a mi hijo a asistir al museo.", "type": "PERMISO"}
    payload.update(extra)
    response = await client.post("/api/v1/documents", json=payload, headers=auth_headers(admin))
    assert response.status_code == 201, response.text
    return response.json()


async def publish(client, admin, document_id):
    return await client.put(f"/api/v1/documents/{document_id}", json={"status": "PENDING"}, headers=auth_headers(admin))


async def sign(client, user, document_id, **payload):
    return await client.post(
        f"/api/v1/documents/{document_id}/sign",
        json=payload,
        headers={**auth_headers(user), "User-Agent": "pytest-browser"}
    )


class TestDocumentAuthoring:
    async def test_drafts_are_hidden_from_parents(self, client, admin, parent, group, tutor_link):
        document = await create_document(client, admin, group_id=str(group.id))
        assert document["status"] == "DRAFT"
        assert document["version"] == 1

        listing = await client.get("/api/v1/documents", headers=auth_headers(parent))
        assert listing.json()["total"] == 0
        direct = await client.get(f"/api/v1/documents/{document['id']}", headers=auth_headers(parent))
        assert direct.status_code == 403

        await publish(client, admin, document["id"])
        listing = await client.get("/api/v1/documents", headers=auth_headers(parent))
        assert [d["id"] for d in listing.json()["items"]] == [document["id"]]
        assert listing.json()["items"][0]["has_signed"] is False

    async def test_content_change_bumps_version(self, client, admin):
        document = await create_document(client, admin)
        response = await client.put(
            f"/api/v1/documents/{document['id']}", json={"content": "Texto revisado"}, headers=auth_headers(admin)
        )
        assert response.json()["version"] == 2

    async def test_unknown_group_rejected(self, client, admin, student):
        response = await client.post(
            "/api/v1/documents",
            json={"title": "Circular", "content": "Texto", "group_id": str(student.id)},
            headers=auth_headers(admin)
        )
        assert response.status_code == 400

    async def test_cannot_publish_cancelled(self, client, admin):
        document = await create_document(client, admin)
        await client.put(f"/api/v1/documents/{document['id']}", json={"status": "CANCELLED"}, headers=auth_headers(admin))
        response = await publish(client, admin, document["id"])
        assert response.status_code == 409


class TestSigning:
    async def test_group_document_completes_when_every_tutor_signs(
        self, client, db, admin, parent, other_parent, student, group, tutor_link
    ):
        await link_tutor(db, student, other_parent)
        document = await create_document(client, admin, group_id=str(group.id))
        await publish(client, admin, document["id"])

        first = await sign(client, parent, document["id"], student_id=str(student.id), signature_data="data:image/png;base64,AAA")
        assert first.status_code == 201
        signature = first.json()["signature"]
        assert len(signature["verification_code"]) == 32
        assert signature["user_name"] == parent.name

        partial = await client.get(f"/api/v1/documents/{document['id']}", headers=auth_headers(admin))
        assert partial.json()["status"] == "PARTIALLY_SIGNED"

        await sign(client, other_parent, document["id"])
        done = await client.get(f"/api/v1/documents/{document['id']}", headers=auth_headers(admin))
        assert done.json()["status"] == "COMPLETED"
        assert done.json()["signature_count"] == 2
        assert done.json()["completed_at"] is not None

        signatures = await client.get(f"/api/v1/documents/{document['id']}/signatures", headers=auth_headers(admin))
        assert [s["user_id"] for s in signatures.json()["items"]] == [str(parent.id), str(other_parent.id)]

    async def test_cannot_sign_twice(self, client, admin, parent, group, tutor_link, other_parent, db, student):
        await link_tutor(db, student, other_parent)
        document = await create_document(client, admin, group_id=str(group.id))
        await publish(client, admin, document["id"])

        await sign(client, parent, document["id"])
        again = await sign(client, parent, document["id"])
        assert again.status_code == 400

    async def test_drafts_cannot_be_signed(self, client, admin, parent, tutor_link):
        document = await create_document(client, admin)
        response = await sign(client, parent, document["id"])
        assert response.status_code == 400

    async def test_outside_audience_cannot_sign(self, client, admin, other_parent, group, tutor_link):
        document = await create_document(client, admin, group_id=str(group.id))
        await publish(client, admin, document["id"])
        response = await sign(client, other_parent, document["id"])
        assert response.status_code == 403

    async def test_expired_document(self, client, admin, parent):
        document = await create_document(client, admin, expires_at="2020-06-30T23:59:59Z")
        await publish(client, admin, document["id"])

        response = await sign(client, parent, document["id"])
        assert response.status_code == 400
        current = await client.get(f"/api/v1/documents/{document['id']}", headers=auth_headers(admin))
        assert current.json()["status"] == "EXPIRED"

    async def test_pending_view_excludes_signed(self, client, admin, parent, other_parent, student, group, tutor_link, db):
        await link_tutor(db, student, other_parent)
        document = await create_document(client, admin, group_id=str(group.id))
        await publish(client, admin, document["id"])
        await sign(client, parent, document["id"])

        pending = await client.get("/api/v1/documents", params={"view": "pending"}, headers=auth_headers(parent))
        assert pending.json()["total"] == 0
        everything = await client.get("/api/v1/documents", params={"view": "all"}, headers=auth_headers(parent))
        assert everything.json()["items"][0]["has_signed"] is True

    async def test_signed_documents_cannot_be_deleted(self, client, admin, parent, other_parent, student, group, tutor_link, db):
        await link_tutor(db, student, other_parent)
        document = await create_document(client, admin, group_id=str(group.id))
        await publish(client, admin, document["id"])
        await sign(client, parent, document["id"])

        response = await client.delete(f"/api/v1/documents/{document['id']}", headers=auth_headers(admin))
        assert response.status_code == 400


class TestVerification:
    async def test_public_verification(self, client, admin, parent):
        document = await create_document(client, admin, target_role="PADRE")
        await publish(client, admin, document["id"])
        code = (await sign(client, parent, document["id"])).json()["signature"]["verification_code"]

        response = await client.get(f"/api/v1/public/documents/verify/{code}")
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["signer_name"] == parent.name
        assert data["document_title"] == "Permiso excursión"

    async def test_unknown_code(self, client):
        response = await client.get("/api/v1/public/documents/verify/deadbeef")
        assert response.status_code == 404
