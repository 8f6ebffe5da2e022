from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func, select

from iaschool.models import Charge, ReferralReward
from iaschool.models.tenant_specific.referral import RewardStatus
from iaschool.services.referral_service import ReferralService
from iaschool.utils.dates import utcnow

from .factories import auth_headers

REFERRAL = {
    "referred_name": "Familia Torres",
    "referred_phone": "55 1234 5678",
    "referred_email": "torres@correo.mx",
    "children_count": 2,
}


async def submit(client, parent, **overrides):
    return await client.post("/api/v1/parent/referrals", json={**REFERRAL, **overrides}, headers=auth_headers(parent))


async def move(client, admin, referral_id, status, **extra):
    return await client.patch(
        "/api/v1/school_authority/referrals",
        json={"referral_id": referral_id, "status": status, **extra},
        headers=auth_headers(admin)
    )


class TestParentReferrals:
    async def test_submit_referral(self, client, parent):
        response = await submit(client, parent)
        assert response.status_code == 201
        referral = response.json()["referral"]
        assert referral["status"] == "PENDING"
        assert referral["reward"] is None

        overview = await client.get("/api/v1/parent/referrals", headers=auth_headers(parent))
        assert overview.status_code == 200
        data = overview.json()
        assert data["stats"]["total"] == 1
        assert data["stats"]["pending"] == 1
        assert data["program"]["reward_type"] == "DISCOUNT_PERCENTAGE"

    async def test_same_phone_is_already_referred(self, client, parent, other_parent):
        await submit(client, parent)
        response = await submit(client, other_parent, referred_phone="(55) 1234-5678", referred_name="Otro nombre")
        assert response.status_code == 409
        assert response.json()["detail"]["already_referred"] is True

    async def test_concurrent_duplicate_hits_the_constraint(self, client, parent, other_parent, monkeypatch):
        await submit(client, parent)

        async def not_yet_seen(self, school_id, phone_hash):
            return False

        monkeypatch.setattr(ReferralService, "_already_referred", not_yet_seen)
        response = await submit(client, other_parent)
        assert response.status_code == 409
        assert response.json()["detail"]["already_referred"] is True

        overview = await client.get("/api/v1/parent/referrals", headers=auth_headers(other_parent))
        assert overview.json()["stats"]["total"] == 0

    async def test_short_phone_rejected(self, client, parent):
        response = await submit(client, parent, referred_phone="12345")
        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "referred_phone"

    async def test_pending_charges_block_referrals(self, client, db, school, parent, student, tutor_link):
        db.add(Charge(
            school_id=school.id, student_id=student.id, concept="Colegiatura marzo",
            original_amount=Decimal("3500"), amount=Decimal("3500"), due_date=utcnow() + timedelta(days=5)
        ))
        await db.commit()

        response = await submit(client, parent)
        assert response.status_code == 400

        overview = await client.get("/api/v1/parent/referrals", headers=auth_headers(parent))
        eligibility = overview.json()["eligibility"]
        assert eligibility["is_eligible"] is False
        assert eligibility["pending_charges"] == 1

    async def test_inactive_program_rejects(self, client, admin, parent):
        await client.put("/api/v1/school_authority/referrals/program", json={"is_active": False}, headers=auth_headers(admin))
        response = await submit(client, parent)
        assert response.status_code == 400


class TestReferralPipeline:
    async def test_enrolled_grants_exactly_one_reward(self, client, db, admin, parent):
        await client.put(
            "/api/v1/school_authority/referrals/program",
            json={"reward_type": "DISCOUNT_FIXED", "reward_value": "500"},
            headers=auth_headers(admin)
        )
        referral_id = (await submit(client, parent)).json()["referral"]["id"]

        contacted = await move(client, admin, referral_id, "CONTACTED", admin_notes="Llamada inicial")
        assert contacted.status_code == 200
        assert contacted.json()["referral"]["contacted_at"] is not None

        enrolled = await move(client, admin, referral_id, "ENROLLED")
        assert enrolled.status_code == 200
        reward = enrolled.json()["referral"]["reward"]
        assert reward["reward_type"] == "DISCOUNT_FIXED"
        assert reward["reward_value"] == 500.0
        assert reward["status"] == "ACTIVE"

        again = await move(client, admin, referral_id, "ENROLLED")
        assert again.status_code == 200

        count = await db.execute(select(func.count()).select_from(ReferralReward))
        assert count.scalar() == 1

        program = await client.get("/api/v1/school_authority/referrals/program", headers=auth_headers(admin))
        assert program.json()["successful_referrals"] == 1
        assert program.json()["total_referrals"] == 1

    async def test_cannot_skip_to_enrolled(self, client, admin, parent):
        referral_id = (await submit(client, parent)).json()["referral"]["id"]
        response = await move(client, admin, referral_id, "ENROLLED")
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["from"] == "PENDING"
        assert "CONTACTED" in detail["allowed"]

    async def test_list_leads_with_stats(self, client, admin, parent):
        first = (await submit(client, parent)).json()["referral"]["id"]
        await submit(client, parent, referred_phone="5598765432", referred_name="Familia Ruiz")
        await move(client, admin, first, "CONTACTED")

        response = await client.get(
            "/api/v1/school_authority/referrals", params={"status": "CONTACTED"}, headers=auth_headers(admin)
        )
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["referrer_email"] == parent.email
        assert data["stats"]["PENDING"] == 1
        assert data["stats"]["CONTACTED"] == 1
        assert data["stats"]["total"] == 2

    async def test_program_reward_value_must_be_positive(self, client, admin):
        response = await client.put(
            "/api/v1/school_authority/referrals/program", json={"reward_value": "0"}, headers=auth_headers(admin)
        )
        assert response.status_code == 400

    async def test_expire_rewards(self, client, db, admin, parent):
        referral_id = (await submit(client, parent)).json()["referral"]["id"]
        await move(client, admin, referral_id, "CONTACTED")
        await move(client, admin, referral_id, "ENROLLED")

        service = ReferralService(db)
        assert await service.expire_rewards() == 0
        assert await service.expire_rewards(now=utcnow() + timedelta(days=400)) == 1

        reward = (await db.execute(select(ReferralReward))).scalar_one()
        assert reward.status == RewardStatus.EXPIRED
