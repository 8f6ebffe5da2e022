from decimal import Decimal

from iaschool.models import Scholarship
from iaschool.models.tenant_specific.payment import ChargeType
from iaschool.models.tenant_specific.scholarship import DiscountType, ScholarshipApplyTo
from iaschool.services.scholarship_service import apply_scholarships

from .factories import auth_headers, create_student


def make_scholarship(discount_type, value, apply_to=ScholarshipApplyTo.COLEGIATURA):
    return Scholarship(name="Beca", discount_type=discount_type, discount_value=Decimal(value), apply_to=apply_to)


class TestDiscountMath:
    def test_percentage_discount(self):
        discount, final = apply_scholarships(
            Decimal("3500"), ChargeType.COLEGIATURA, [make_scholarship(DiscountType.PERCENTAGE, "25")]
        )
        assert discount == Decimal("875.00")
        assert final == Decimal("2625.00")

    def test_discounts_stack_but_never_go_negative(self):
        scholarships = [
            make_scholarship(DiscountType.PERCENTAGE, "60"),
            make_scholarship(DiscountType.FIXED, "2000", apply_to=ScholarshipApplyTo.TODOS),
        ]
        discount, final = apply_scholarships(Decimal("3000"), ChargeType.COLEGIATURA, scholarships)
        assert discount == Decimal("3000")
        assert final == Decimal("0.00")

    def test_only_matching_charge_types(self):
        scholarships = [make_scholarship(DiscountType.PERCENTAGE, "50")]
        discount, final = apply_scholarships(Decimal("1200"), ChargeType.UNIFORME, scholarships)
        assert discount == Decimal("0")
        assert final == Decimal("1200.00")


class TestScholarshipEndpoints:
    async def create(self, client, admin, **overrides):
        payload = {"name": "Beca excelencia", "type": "ACADEMICA", "discount_type": "PERCENTAGE", "discount_value": "30"}
        payload.update(overrides)
        return await client.post("/api/v1/school_authority/scholarships", json=payload, headers=auth_headers(admin))

    async def test_percentage_over_100_rejected(self, client, admin):
        response = await self.create(client, admin, discount_value="120")
        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "discount_value"

    async def test_assign_and_skip_existing(self, client, db, admin, school, student):
        scholarship_id = (await self.create(client, admin)).json()["id"]
        sibling = await create_student(db, school, first_name="Pablo")

        url = f"/api/v1/school_authority/scholarships/{scholarship_id}/students"
        first = await client.post(url, json={"student_ids": [str(student.id)]}, headers=auth_headers(admin))
        assert first.json() == {"assigned": 1, "skipped": 0}

        second = await client.post(
            url, json={"student_ids": [str(student.id), str(sibling.id)]}, headers=auth_headers(admin)
        )
        assert second.json() == {"assigned": 1, "skipped": 1}

        repeat = await client.post(url, json={"student_ids": [str(student.id)]}, headers=auth_headers(admin))
        assert repeat.status_code == 400

        detail = await client.get(f"/api/v1/school_authority/scholarships/{scholarship_id}", headers=auth_headers(admin))
        assert detail.json()["beneficiaries"] == 2
        assert {s["name"] for s in detail.json()["students"]} == {"Ana López", "Pablo López"}

    async def test_max_beneficiaries(self, client, db, admin, school, student):
        scholarship_id = (await self.create(client, admin, max_beneficiaries=1)).json()["id"]
        sibling = await create_student(db, school, first_name="Pablo")
        response = await client.post(
            f"/api/v1/school_authority/scholarships/{scholarship_id}/students",
            json={"student_ids": [str(student.id), str(sibling.id)]},
            headers=auth_headers(admin)
        )
        assert response.status_code == 400

    async def test_delete_requires_no_beneficiaries(self, client, admin, student):
        scholarship_id = (await self.create(client, admin)).json()["id"]
        base = f"/api/v1/school_authority/scholarships/{scholarship_id}"
        await client.post(f"{base}/students", json={"student_ids": [str(student.id)]}, headers=auth_headers(admin))

        blocked = await client.delete(base, headers=auth_headers(admin))
        assert blocked.status_code == 400

        removed = await client.delete(f"{base}/students/{student.id}", headers=auth_headers(admin))
        assert removed.status_code == 200
        deleted = await client.delete(base, headers=auth_headers(admin))
        assert deleted.status_code == 200
