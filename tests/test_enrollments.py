from sqlalchemy import select

from iaschool.models import Student, UserRole
from iaschool.models.tenant_specific.user import AdminSubRole

from .factories import auth_headers, create_user

APPLICATION = {
    "school_code": "ias01",
    "parent_name": "Rosa Hernández",
    "parent_email": "Rosa.Hernandez@correo.mx",
    "parent_phone": "55-1111-2222",
    "student_name": "Mateo Hernández",
    "student_birth_date": "2018-04-12",
    "requested_grade": "1° Primaria",
    "requested_year": "2025-2026",
}


async def apply(client, **overrides):
    return await client.post("/api/v1/public/enrollments", json={**APPLICATION, **overrides})


async def patch(client, admin, enrollment_id, **payload):
    return await client.patch(
        f"/api/v1/school_authority/enrollments/{enrollment_id}", json=payload, headers=auth_headers(admin)
    )


class TestPublicApplication:
    async def test_submit_by_school_code(self, client, school):
        response = await apply(client)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PENDING"
        assert data["folio"] == data["id"]

    async def test_unknown_school(self, client, school):
        response = await apply(client, school_code="NOEXISTE")
        assert response.status_code == 404

    async def test_duplicate_open_application(self, client, school):
        await apply(client)
        response = await apply(client, parent_email="rosa.hernandez@correo.mx")
        assert response.status_code == 400

    async def test_invalid_phone_fails_validation(self, client, school):
        response = await apply(client, parent_phone="55-11-22-aa-bb")
        assert response.status_code == 422


class TestAdmissionsPipeline:
    async def test_list_with_counts_and_filter(self, client, admin, school):
        first = (await apply(client)).json()["id"]
        await apply(client, student_name="Lucía Hernández")
        await patch(client, admin, first, status="REVIEWING")

        response = await client.get(
            "/api/v1/school_authority/enrollments", params={"status": "REVIEWING"}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["parent_email"] == "rosa.hernandez@correo.mx"
        assert data["counts"]["PENDING"] == 1
        assert data["counts"]["REVIEWING"] == 1

    async def test_rejection_needs_reason(self, client, admin, school):
        enrollment_id = (await apply(client)).json()["id"]
        response = await patch(client, admin, enrollment_id, status="REJECTED")
        assert response.status_code == 400

        response = await patch(client, admin, enrollment_id, status="REJECTED", rejection_reason="Cupo lleno")
        assert response.status_code == 200
        assert response.json()["reviewed_by"] == str(admin.id)

        # Closed applications no longer block a new one
        assert (await apply(client)).status_code == 201

    async def test_accepted_cannot_go_back_to_review(self, client, admin, school):
        enrollment_id = (await apply(client)).json()["id"]
        await patch(client, admin, enrollment_id, status="ACCEPTED")
        response = await patch(client, admin, enrollment_id, status="REVIEWING")
        assert response.status_code == 409
        assert response.json()["detail"]["allowed"] == ["CANCELLED", "ENROLLED"]

    async def test_enrolled_creates_student(self, client, db, admin, school):
        enrollment_id = (await apply(client)).json()["id"]
        await patch(client, admin, enrollment_id, status="REVIEWING")
        accepted = await patch(client, admin, enrollment_id, status="ACCEPTED", interview_notes="Muy participativo")
        assert accepted.json()["reviewed_at"] is not None

        enrolled = await patch(client, admin, enrollment_id, status="ENROLLED")
        assert enrolled.status_code == 200
        student_id = enrolled.json()["enrolled_student_id"]
        assert student_id is not None

        student = (await db.execute(select(Student).where(Student.school_id == school.id))).scalar_one()
        assert str(student.id) == student_id
        assert student.first_name == "Mateo"
        assert student.last_name == "Hernández"
        assert student.grade == "1° Primaria"

    async def test_sub_role_gate(self, client, db, school):
        cashier = await create_user(
            db, school, role=UserRole.ADMIN, email="caja@iaschool.mx", admin_sub_roles=[AdminSubRole.CAJA.value]
        )
        registrar = await create_user(
            db, school, role=UserRole.ADMIN, email="control@iaschool.mx",
            admin_sub_roles=[AdminSubRole.CONTROL_ESCOLAR.value]
        )
        denied = await client.get("/api/v1/school_authority/enrollments", headers=auth_headers(cashier))
        assert denied.status_code == 403
        allowed = await client.get("/api/v1/school_authority/enrollments", headers=auth_headers(registrar))
        assert allowed.status_code == 200

    async def test_other_school_cannot_update(self, client, db, school, other_school):
        enrollment_id = (await apply(client)).json()["id"]
        foreign_admin = await create_user(db, other_school, role=UserRole.ADMIN, email="admin@ias02.mx")
        response = await patch(client, foreign_admin, enrollment_id, status="REVIEWING")
        assert response.status_code == 404
