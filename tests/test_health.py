from iaschool.tasks.celery_app import celery_app
from iaschool.tasks.campaign_tasks import deliver_campaign


async def test_health(client):
    response = await client.get("/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["environment"] == "test"


async def test_database_health(client):
    response = await client.get("/health/db-health")
    assert response.json() == {"status": "healthy", "database": "connected", "result": 1}


async def test_cache_disabled(client):
    response = await client.get("/health/cache-health")
    assert response.json()["status"] == "disabled"


async def test_root(client):
    response = await client.get("/")
    assert response.json()["message"] == "IA School API"


def test_beat_schedule_registers_maintenance_tasks():
    tasks = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
    assert tasks == {
        "iaschool.tasks.maintenance_tasks.mark_overdue_charges",
        "iaschool.tasks.maintenance_tasks.expire_referral_rewards",
    }
    assert deliver_campaign.name in celery_app.tasks
