from sqlalchemy import select

from iaschool.models import StudentTutor, UserRole

from .factories import auth_headers, create_user


class TestTutorLinks:
    async def test_link_parent_to_student(self, client, admin, student, parent):
        response = await client.post(
            "/api/v1/school_authority/tutors",
            json={
                "student_id": str(student.id),
                "tutor_id": str(parent.id),
                "relationship": "PADRE",
                "is_primary_contact": True,
                "can_view_payments": False,
                "has_full_access": False,
            },
            headers=auth_headers(admin)
        )
        assert response.status_code == 201
        data = response.json()
        assert data["student_name"] == "Ana López"
        assert data["tutor_email"] == parent.email
        assert data["permissions"]["can_view_payments"] is False
        assert data["permissions"]["can_pickup"] is True

    async def test_duplicate_link_rejected(self, client, admin, student, parent, tutor_link):
        response = await client.post(
            "/api/v1/school_authority/tutors",
            json={"student_id": str(student.id), "tutor_id": str(parent.id)},
            headers=auth_headers(admin)
        )
        assert response.status_code == 400

    async def test_tutor_must_be_a_parent(self, client, admin, student, teacher):
        response = await client.post(
            "/api/v1/school_authority/tutors",
            json={"student_id": str(student.id), "tutor_id": str(teacher.id)},
            headers=auth_headers(admin)
        )
        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "tutor_id"

    async def test_single_primary_contact(self, client, db, admin, student, other_parent, tutor_link):
        response = await client.post(
            "/api/v1/school_authority/tutors",
            json={"student_id": str(student.id), "tutor_id": str(other_parent.id), "is_primary_contact": True},
            headers=auth_headers(admin)
        )
        assert response.status_code == 201

        result = await db.execute(
            select(StudentTutor).where(StudentTutor.student_id == student.id, StudentTutor.is_primary_contact == True)
        )
        primaries = result.scalars().all()
        assert [link.tutor_id for link in primaries] == [other_parent.id]

    async def test_deactivate_and_list(self, client, admin, student, tutor_link):
        response = await client.put(
            f"/api/v1/school_authority/tutors/{tutor_link.id}",
            json={"is_active": False, "deactivated_reason": "Cambio de custodia"},
            headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert response.json()["deactivated_at"] is not None

        listing = await client.get(
            "/api/v1/school_authority/tutors",
            params={"student_id": str(student.id)},
            headers=auth_headers(admin)
        )
        assert listing.json()["total"] == 1

    async def test_delete_link(self, client, admin, tutor_link):
        response = await client.delete(f"/api/v1/school_authority/tutors/{tutor_link.id}", headers=auth_headers(admin))
        assert response.status_code == 200

        again = await client.delete(f"/api/v1/school_authority/tutors/{tutor_link.id}", headers=auth_headers(admin))
        assert again.status_code == 404

    async def test_other_school_cannot_see_links(self, client, db, other_school, tutor_link):
        foreign_admin = await create_user(db, other_school, role=UserRole.ADMIN, email="admin@ias02.mx")
        response = await client.put(
            f"/api/v1/school_authority/tutors/{tutor_link.id}",
            json={"can_pickup": False},
            headers=auth_headers(foreign_admin)
        )
        assert response.status_code == 404
