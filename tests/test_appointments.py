from .factories import auth_headers


async def request_appointment(client, parent, teacher, student=None, **extra):
    payload = {
        "teacher_id": str(teacher.id),
        "date": "2030-03-10",
        "start_time": "09:30",
        "end_time": "10:00",
        "subject": "Avance en matemáticas",
    }
    if student is not None:
        payload["student_id"] = str(student.id)
    payload.update(extra)
    return await client.post("/api/v1/appointments", json=payload, headers=auth_headers(parent))


class TestBooking:
    async def test_parent_books_with_teacher(self, client, parent, teacher, student, tutor_link):
        response = await request_appointment(client, parent, teacher, student)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PENDING"
        assert data["teacher_name"] == teacher.name
        assert data["student_name"] == "Ana López"

        teacher_view = await client.get("/api/v1/appointments", headers=auth_headers(teacher))
        assert [a["id"] for a in teacher_view.json()["items"]] == [data["id"]]

    async def test_slot_clash(self, client, parent, other_parent, teacher):
        await request_appointment(client, parent, teacher)
        response = await request_appointment(client, other_parent, teacher)
        assert response.status_code == 409

    async def test_cancelled_slot_can_be_rebooked(self, client, parent, other_parent, teacher):
        first = (await request_appointment(client, parent, teacher)).json()
        await client.delete(f"/api/v1/appointments/{first['id']}", headers=auth_headers(parent))
        response = await request_appointment(client, other_parent, teacher)
        assert response.status_code == 201

    async def test_teacher_must_be_a_teacher(self, client, parent, admin):
        response = await request_appointment(client, parent, admin)
        assert response.status_code == 400

    async def test_student_must_be_own_child(self, client, parent, teacher, student):
        response = await request_appointment(client, parent, teacher, student)
        assert response.status_code == 400

    async def test_time_format_validated(self, client, parent, teacher):
        response = await request_appointment(client, parent, teacher, start_time="9:30am")
        assert response.status_code == 422


class TestLifecycle:
    async def test_teacher_confirms_and_completes(self, client, parent, teacher):
        appointment = (await request_appointment(client, parent, teacher)).json()
        url = f"/api/v1/appointments/{appointment['id']}"

        confirmed = await client.patch(url, json={"status": "CONFIRMED"}, headers=auth_headers(teacher))
        assert confirmed.json()["status"] == "CONFIRMED"

        completed = await client.patch(
            url, json={"status": "COMPLETED", "teacher_notes": "Mejoró en fracciones"}, headers=auth_headers(teacher)
        )
        assert completed.json()["teacher_notes"] == "Mejoró en fracciones"

        cancel = await client.delete(url, headers=auth_headers(parent))
        assert cancel.status_code == 400

    async def test_parent_cannot_change_status(self, client, parent, teacher):
        appointment = (await request_appointment(client, parent, teacher)).json()
        response = await client.patch(
            f"/api/v1/appointments/{appointment['id']}", json={"status": "CONFIRMED"}, headers=auth_headers(parent)
        )
        assert response.status_code == 400

    async def test_subject_locked_after_confirmation(self, client, parent, teacher):
        appointment = (await request_appointment(client, parent, teacher)).json()
        url = f"/api/v1/appointments/{appointment['id']}"
        changed = await client.patch(url, json={"subject": "Conducta"}, headers=auth_headers(parent))
        assert changed.json()["subject"] == "Conducta"

        await client.patch(url, json={"status": "CONFIRMED"}, headers=auth_headers(teacher))
        locked = await client.patch(url, json={"subject": "Otro tema"}, headers=auth_headers(parent))
        assert locked.status_code == 400

    async def test_cancel_records_reason(self, client, parent, teacher):
        appointment = (await request_appointment(client, parent, teacher)).json()
        response = await client.delete(
            f"/api/v1/appointments/{appointment['id']}", params={"reason": "Viaje"}, headers=auth_headers(parent)
        )
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["cancel_reason"] == "Viaje"
        assert response.json()["cancelled_at"] is not None

    async def test_strangers_get_404(self, client, parent, other_parent, teacher):
        appointment = (await request_appointment(client, parent, teacher)).json()
        response = await client.get(f"/api/v1/appointments/{appointment['id']}", headers=auth_headers(other_parent))
        assert response.status_code == 404


class TestVideo:
    async def test_enable_and_disable_video(self, client, parent, teacher):
        appointment = (await request_appointment(client, parent, teacher)).json()
        url = f"/api/v1/appointments/{appointment['id']}/video"

        enabled = await client.post(url, json={"enabled": True}, headers=auth_headers(teacher))
        data = enabled.json()
        assert data["is_video_call"] is True
        assert data["meeting_url"].startswith("https://meet.jit.si/IAS01-")

        again = await client.post(url, json={"enabled": True}, headers=auth_headers(parent))
        assert again.json()["meeting_url"] == data["meeting_url"]

        disabled = await client.post(url, json={"enabled": False}, headers=auth_headers(parent))
        assert disabled.json()["meeting_url"] is None

    async def test_no_video_for_cancelled(self, client, parent, teacher):
        appointment = (await request_appointment(client, parent, teacher)).json()
        await client.delete(f"/api/v1/appointments/{appointment['id']}", headers=auth_headers(parent))
        response = await client.post(
            f"/api/v1/appointments/{appointment['id']}/video", json={"enabled": True}, headers=auth_headers(parent)
        )
        assert response.status_code == 400
