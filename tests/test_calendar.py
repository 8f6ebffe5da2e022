from .factories import auth_headers, create_user


async def create_event(client, user, **extra):
    payload = {
        "title": "Junta de padres",
        "start_date": "2030-02-20T17:00:00Z",
        "end_date": "2030-02-20T18:30:00Z",
        "type": "REUNION",
    }
    payload.update(extra)
    return await client.post("/api/v1/calendar/events", json=payload, headers=auth_headers(user))


class TestEvents:
    async def test_staff_creates_event_with_attendees(self, client, teacher, parent):
        response = await create_event(client, teacher, attendee_ids=[str(parent.id)])
        assert response.status_code == 201
        data = response.json()
        assert data["creator_name"] == teacher.name
        assert data["color"] == "#1B4079"
        assert [a["status"] for a in data["attendees"]] == ["PENDING"]

    async def test_parents_cannot_create_events(self, client, parent):
        response = await create_event(client, parent)
        assert response.status_code == 403

    async def test_end_before_start(self, client, admin):
        response = await create_event(client, admin, end_date="2030-02-20T16:00:00Z")
        assert response.status_code == 400

    async def test_foreign_attendees_rejected(self, client, db, admin, other_school):
        outsider = await create_user(db, other_school, email="padre@ias02.mx")
        response = await create_event(client, admin, attendee_ids=[str(outsider.id)])
        assert response.status_code == 400


class TestVisibility:
    async def test_parent_sees_public_invited_and_group_events(
        self, client, admin, parent, other_parent, group, tutor_link
    ):
        public = (await create_event(client, admin, title="Kermés", is_public=True)).json()
        invited = (await create_event(client, admin, title="Entrevista", attendee_ids=[str(parent.id)])).json()
        grouped = (await create_event(client, admin, title="Festival 1A", group_id=str(group.id))).json()
        await create_event(client, admin, title="Consejo técnico")

        mine = await client.get("/api/v1/calendar/events", headers=auth_headers(parent))
        assert {e["id"] for e in mine.json()["items"]} == {public["id"], invited["id"], grouped["id"]}

        theirs = await client.get("/api/v1/calendar/events", headers=auth_headers(other_parent))
        assert [e["id"] for e in theirs.json()["items"]] == [public["id"]]

        everything = await client.get("/api/v1/calendar/events", headers=auth_headers(admin))
        assert everything.json()["total"] == 4

    async def test_date_window(self, client, admin):
        await create_event(client, admin, title="Febrero")
        await create_event(
            client, admin, title="Abril", start_date="2030-04-01T08:00:00Z", end_date="2030-04-01T09:00:00Z"
        )
        response = await client.get(
            "/api/v1/calendar/events",
            params={"start": "2030-03-01T00:00:00Z", "end": "2030-04-30T00:00:00Z"},
            headers=auth_headers(admin)
        )
        assert [e["title"] for e in response.json()["items"]] == ["Abril"]


class TestRSVP:
    async def test_invited_user_responds(self, client, admin, parent):
        event = (await create_event(client, admin, attendee_ids=[str(parent.id)])).json()
        response = await client.post(
            f"/api/v1/calendar/events/{event['id']}/rsvp", json={"status": "CONFIRMED"}, headers=auth_headers(parent)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "CONFIRMED"

        detail = await client.get(f"/api/v1/calendar/events/{event['id']}", headers=auth_headers(parent))
        assert detail.json()["my_response"] == "CONFIRMED"

    async def test_pending_is_not_a_response(self, client, admin, parent):
        event = (await create_event(client, admin, attendee_ids=[str(parent.id)])).json()
        response = await client.post(
            f"/api/v1/calendar/events/{event['id']}/rsvp", json={"status": "PENDING"}, headers=auth_headers(parent)
        )
        assert response.status_code == 400

    async def test_uninvited_user(self, client, admin, other_parent):
        event = (await create_event(client, admin, is_public=True)).json()
        response = await client.post(
            f"/api/v1/calendar/events/{event['id']}/rsvp", json={"status": "DECLINED"}, headers=auth_headers(other_parent)
        )
        assert response.status_code == 404


class TestEditing:
    async def test_only_creator_or_admin_edits(self, client, admin, teacher):
        event = (await create_event(client, admin)).json()
        denied = await client.put(
            f"/api/v1/calendar/events/{event['id']}", json={"title": "Cambio"}, headers=auth_headers(teacher)
        )
        assert denied.status_code == 403

        own = (await create_event(client, teacher)).json()
        allowed = await client.put(
            f"/api/v1/calendar/events/{own['id']}", json={"location": "Auditorio"}, headers=auth_headers(teacher)
        )
        assert allowed.json()["location"] == "Auditorio"

    async def test_replace_attendees_keeps_responses(self, client, admin, parent, other_parent):
        event = (await create_event(client, admin, attendee_ids=[str(parent.id)])).json()
        await client.post(
            f"/api/v1/calendar/events/{event['id']}/rsvp", json={"status": "DECLINED"}, headers=auth_headers(parent)
        )
        response = await client.put(
            f"/api/v1/calendar/events/{event['id']}",
            json={"attendee_ids": [str(parent.id), str(other_parent.id)]},
            headers=auth_headers(admin)
        )
        statuses = {a["user_id"]: a["status"] for a in response.json()["attendees"]}
        assert statuses == {str(parent.id): "DECLINED", str(other_parent.id): "PENDING"}

    async def test_delete(self, client, admin):
        event = (await create_event(client, admin)).json()
        await client.delete(f"/api/v1/calendar/events/{event['id']}", headers=auth_headers(admin))
        response = await client.get(f"/api/v1/calendar/events/{event['id']}", headers=auth_headers(admin))
        assert response.status_code == 404
