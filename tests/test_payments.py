from datetime import timedelta

from sqlalchemy import select

from iaschool.models import Charge, UserRole
from iaschool.models.tenant_specific.payment import ChargeStatus
from iaschool.services.payment_service import PaymentService
from iaschool.utils.dates import utcnow

from .factories import auth_headers, create_student, create_user, link_tutor

FUTURE = "2030-01-15T00:00:00Z"


async def create_charge(client, admin, student, amount="3500.00", due_date=FUTURE, **extra):
    return await client.post(
        "/api/v1/payments/charges",
        json={"student_id": str(student.id), "concept": "Colegiatura enero", "amount": amount, "due_date": due_date, **extra},
        headers=auth_headers(admin)
    )


async def pay(client, admin, charge_id, amount, **extra):
    return await client.post(
        f"/api/v1/payments/charges/{charge_id}/payments",
        json={"amount": amount, **extra},
        headers=auth_headers(admin)
    )


class TestCharges:
    async def test_create_charge(self, client, admin, student):
        response = await create_charge(client, admin, student)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PENDIENTE"
        assert data["amount"] == 3500.0
        assert data["balance"] == 3500.0
        assert data["student_name"] == "Ana López"

    async def test_past_due_date_is_overdue(self, client, admin, student):
        response = await create_charge(client, admin, student, due_date="2020-01-01T00:00:00Z")
        assert response.json()["status"] == "VENCIDO"

    async def test_non_positive_amount(self, client, admin, student):
        response = await create_charge(client, admin, student, amount="0")
        assert response.status_code == 400

    async def test_scholarship_discount_applied(self, client, admin, student):
        scholarship = await client.post(
            "/api/v1/school_authority/scholarships",
            json={"name": "Beca hermanos", "discount_type": "PERCENTAGE", "discount_value": "20"},
            headers=auth_headers(admin)
        )
        await client.post(
            f"/api/v1/school_authority/scholarships/{scholarship.json()['id']}/students",
            json={"student_ids": [str(student.id)]},
            headers=auth_headers(admin)
        )

        tuition = (await create_charge(client, admin, student)).json()
        assert tuition["original_amount"] == 3500.0
        assert tuition["discount"] == 700.0
        assert tuition["amount"] == 2800.0

        uniform = (await create_charge(client, admin, student, amount="900", type="UNIFORME")).json()
        assert uniform["discount"] == 0.0

    async def test_amount_edit_keeps_scholarship_discount(self, client, admin, student):
        scholarship = await client.post(
            "/api/v1/school_authority/scholarships",
            json={"name": "Beca excelencia", "discount_type": "PERCENTAGE", "discount_value": "20"},
            headers=auth_headers(admin)
        )
        await client.post(
            f"/api/v1/school_authority/scholarships/{scholarship.json()['id']}/students",
            json={"student_ids": [str(student.id)]},
            headers=auth_headers(admin)
        )
        charge_id = (await create_charge(client, admin, student)).json()["id"]

        response = await client.put(
            f"/api/v1/payments/charges/{charge_id}", json={"amount": "4000"}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["original_amount"] == 4000.0
        assert data["discount"] == 800.0
        assert data["amount"] == 3200.0

    async def test_paid_statuses_come_only_from_payments(self, client, admin, student):
        charge_id = (await create_charge(client, admin, student)).json()["id"]
        url = f"/api/v1/payments/charges/{charge_id}"
        for status in ("PAGADO", "PARCIAL"):
            response = await client.put(url, json={"status": status}, headers=auth_headers(admin))
            assert response.status_code == 400

        current = (await client.get(url, headers=auth_headers(admin))).json()
        assert current["status"] == "PENDIENTE"
        assert current["amount_paid"] == 0.0

        overdue = await client.put(url, json={"status": "VENCIDO"}, headers=auth_headers(admin))
        assert overdue.json()["status"] == "VENCIDO"

    async def test_cashier_sub_role_required(self, client, db, school, student):
        registrar = await create_user(
            db, school, role=UserRole.ADMIN, email="control@iaschool.mx", admin_sub_roles=["CONTROL_ESCOLAR"]
        )
        response = await create_charge(client, registrar, student)
        assert response.status_code == 403

    async def test_delete_blocked_by_payments(self, client, admin, student):
        charge_id = (await create_charge(client, admin, student)).json()["id"]
        await pay(client, admin, charge_id, "100")
        response = await client.delete(f"/api/v1/payments/charges/{charge_id}", headers=auth_headers(admin))
        assert response.status_code == 400


class TestPayments:
    async def test_partial_then_paid(self, client, admin, student):
        charge_id = (await create_charge(client, admin, student)).json()["id"]

        partial = await pay(client, admin, charge_id, "1500.00", method="TRANSFERENCIA", reference="TRX-1")
        assert partial.status_code == 201
        body = partial.json()
        assert body["charge"]["status"] == "PARCIAL"
        assert body["charge"]["amount_paid"] == 1500.0
        assert body["charge"]["balance"] == 2000.0
        assert body["payment"]["receipt_number"].startswith("REC-")

        paid = await pay(client, admin, charge_id, "2000.00")
        assert paid.json()["charge"]["status"] == "PAGADO"
        assert paid.json()["charge"]["paid_at"] is not None

        detail = await client.get(f"/api/v1/payments/charges/{charge_id}", headers=auth_headers(admin))
        assert [p["amount"] for p in detail.json()["payments"]] == [1500.0, 2000.0]

    async def test_paid_charge_rejects_more_payments(self, client, admin, student):
        charge_id = (await create_charge(client, admin, student, amount="1000")).json()["id"]
        await pay(client, admin, charge_id, "1000")
        response = await pay(client, admin, charge_id, "10")
        assert response.status_code == 409
        assert response.json()["detail"]["from"] == "PAGADO"

    async def test_cancelled_charge_rejects_payments(self, client, admin, student):
        charge_id = (await create_charge(client, admin, student)).json()["id"]
        cancelled = await client.put(
            f"/api/v1/payments/charges/{charge_id}", json={"status": "CANCELADO"}, headers=auth_headers(admin)
        )
        assert cancelled.json()["status"] == "CANCELADO"
        assert (await pay(client, admin, charge_id, "10")).status_code == 409

    async def test_zero_payment(self, client, admin, student):
        charge_id = (await create_charge(client, admin, student)).json()["id"]
        assert (await pay(client, admin, charge_id, "0")).status_code == 400


class TestParentView:
    async def test_parent_sees_only_their_children(self, client, db, admin, school, parent, student, tutor_link):
        stranger = await create_student(db, school, first_name="Luis", last_name="Pérez")
        await create_charge(client, admin, student)
        await create_charge(client, admin, stranger, amount="1200")

        response = await client.get("/api/v1/payments/charges", headers=auth_headers(parent))
        assert response.status_code == 200
        data = response.json()
        assert [c["student_id"] for c in data["items"]] == [str(student.id)]
        assert data["summary"]["total_pending"] == 3500.0

        admin_view = await client.get("/api/v1/payments/charges", headers=auth_headers(admin))
        assert admin_view.json()["summary"]["count"] == 2

    async def test_parent_without_payment_permission(self, client, db, admin, school, student, other_parent):
        await link_tutor(db, student, other_parent, has_full_access=False, can_view_payments=False)
        charge_id = (await create_charge(client, admin, student)).json()["id"]

        listing = await client.get("/api/v1/payments/charges", headers=auth_headers(other_parent))
        assert listing.json()["items"] == []
        detail = await client.get(f"/api/v1/payments/charges/{charge_id}", headers=auth_headers(other_parent))
        assert detail.status_code == 404

    async def test_teacher_cannot_list_charges(self, client, teacher):
        response = await client.get("/api/v1/payments/charges", headers=auth_headers(teacher))
        assert response.status_code == 403

    async def test_spei_reference(self, client, db, admin, parent, student, tutor_link):
        await client.put(
            "/api/v1/payments/bank-config",
            json={"bank_name": "BBVA", "bank_clabe": "012180001234567891", "bank_reference_prefix": "IAS"},
            headers=auth_headers(admin)
        )
        charge_id = (await create_charge(client, admin, student)).json()["id"]

        response = await client.get(f"/api/v1/payments/charges/{charge_id}/spei-reference", headers=auth_headers(parent))
        assert response.status_code == 200
        data = response.json()
        assert len(data["reference"]) == 20
        assert data["reference"].startswith("IAS")
        assert data["reference"][-1].isdigit()
        assert data["bank_clabe"] == "012180001234567891"
        assert data["amount"] == 3500.0

    async def test_invalid_clabe(self, client, admin):
        response = await client.put(
            "/api/v1/payments/bank-config", json={"bank_clabe": "1234"}, headers=auth_headers(admin)
        )
        assert response.status_code == 400


class TestOverdueSweep:
    async def test_mark_overdue_charges(self, client, db, admin, student):
        charge_id = (await create_charge(client, admin, student, due_date=FUTURE)).json()["id"]
        partial_id = (await create_charge(client, admin, student, due_date=FUTURE)).json()["id"]
        await pay(client, admin, partial_id, "500")

        service = PaymentService(db)
        assert await service.mark_overdue_charges() == 0
        assert await service.mark_overdue_charges(now=utcnow() + timedelta(days=3650)) == 2

        statuses = (await db.execute(select(Charge.id, Charge.status))).all()
        assert {str(row.id): row.status for row in statuses} == {
            charge_id: ChargeStatus.VENCIDO,
            partial_id: ChargeStatus.VENCIDO,
        }


class TestTenantIsolation:
    async def test_other_school_cannot_read_charge(self, client, db, admin, other_school, student):
        charge_id = (await create_charge(client, admin, student)).json()["id"]
        foreign_admin = await create_user(db, other_school, role=UserRole.ADMIN, email="admin@ias02.mx")
        response = await client.get(f"/api/v1/payments/charges/{charge_id}", headers=auth_headers(foreign_admin))
        assert response.status_code == 404

    async def test_other_school_cannot_bill_student(self, client, db, other_school, student):
        foreign_admin = await create_user(db, other_school, role=UserRole.ADMIN, email="admin@ias02.mx")
        response = await create_charge(client, foreign_admin, student)
        assert response.status_code == 404
