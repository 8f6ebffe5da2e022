from .factories import auth_headers, create_user


async def open_direct(client, user, other):
    return await client.post(
        "/api/v1/messages/conversations",
        json={"type": "DIRECT", "participant_ids": [str(other.id)]},
        headers=auth_headers(user)
    )


async def send(client, user, conversation_id, content):
    return await client.post(
        f"/api/v1/messages/conversations/{conversation_id}/messages",
        json={"content": content},
        headers=auth_headers(user)
    )


class TestConversations:
    async def test_direct_conversation_is_reused(self, client, parent, teacher):
        first = await open_direct(client, parent, teacher)
        assert first.status_code == 201
        names = {p["name"] for p in first.json()["participants"]}
        assert names == {parent.name, teacher.name}

        second = await open_direct(client, teacher, parent)
        assert second.json()["id"] == first.json()["id"]

    async def test_group_needs_title(self, client, admin, parent, teacher):
        payload = {"type": "GROUP", "participant_ids": [str(parent.id), str(teacher.id)]}
        missing = await client.post("/api/v1/messages/conversations", json=payload, headers=auth_headers(admin))
        assert missing.status_code == 400

        created = await client.post(
            "/api/v1/messages/conversations", json={**payload, "title": "Comité de kermés"}, headers=auth_headers(admin)
        )
        assert created.status_code == 201
        assert len(created.json()["participants"]) == 3

    async def test_participants_must_share_school(self, client, db, parent, other_school):
        outsider = await create_user(db, other_school, email="profesor@ias02.mx")
        response = await open_direct(client, parent, outsider)
        assert response.status_code == 400

    async def test_cannot_talk_to_yourself(self, client, parent):
        response = await open_direct(client, parent, parent)
        assert response.status_code == 400


class TestMessages:
    async def test_unread_count_and_last_message(self, client, parent, teacher):
        conversation_id = (await open_direct(client, parent, teacher)).json()["id"]
        await send(client, parent, conversation_id, "Buenas tardes, maestro")
        await send(client, parent, conversation_id, "¿Podemos vernos el lunes?")

        inbox = (await client.get("/api/v1/messages/conversations", headers=auth_headers(teacher))).json()
        conversation = inbox["items"][0]
        assert conversation["unread_count"] == 2
        assert conversation["last_message"]["content"] == "¿Podemos vernos el lunes?"

        await client.get(f"/api/v1/messages/conversations/{conversation_id}/messages", headers=auth_headers(teacher))
        inbox = (await client.get("/api/v1/messages/conversations", headers=auth_headers(teacher))).json()
        assert inbox["items"][0]["unread_count"] == 0

        sender_inbox = (await client.get("/api/v1/messages/conversations", headers=auth_headers(parent))).json()
        assert sender_inbox["items"][0]["unread_count"] == 0

    async def test_cursor_pagination(self, client, parent, teacher):
        conversation_id = (await open_direct(client, parent, teacher)).json()["id"]
        for i in range(5):
            await send(client, parent, conversation_id, f"mensaje {i}")

        url = f"/api/v1/messages/conversations/{conversation_id}/messages"
        seen = []
        cursor = None
        while True:
            params = {"limit": 2}
            if cursor:
                params["cursor"] = cursor
            page = (await client.get(url, params=params, headers=auth_headers(teacher))).json()
            seen.extend(m["content"] for m in page["items"])
            cursor = page["next_cursor"]
            if not page["has_more"]:
                break

        assert seen == [f"mensaje {i}" for i in reversed(range(5))]

    async def test_empty_text_rejected(self, client, parent, teacher):
        conversation_id = (await open_direct(client, parent, teacher)).json()["id"]
        response = await send(client, parent, conversation_id, "   ")
        assert response.status_code == 400

    async def test_file_message_needs_url(self, client, parent, teacher):
        conversation_id = (await open_direct(client, parent, teacher)).json()["id"]
        response = await client.post(
            f"/api/v1/messages/conversations/{conversation_id}/messages",
            json={"type": "FILE", "file_name": "tarea.pdf"},
            headers=auth_headers(parent)
        )
        assert response.status_code == 400

    async def test_outsiders_are_forbidden(self, client, parent, teacher, other_parent):
        conversation_id = (await open_direct(client, parent, teacher)).json()["id"]
        read = await client.get(
            f"/api/v1/messages/conversations/{conversation_id}/messages", headers=auth_headers(other_parent)
        )
        assert read.status_code == 403
        write = await send(client, other_parent, conversation_id, "Hola")
        assert write.status_code == 403
