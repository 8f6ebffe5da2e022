from sqlalchemy.pool import NullPool

from iaschool.core import database
from iaschool.core.config import settings


def test_task_engine_does_not_pool_connections():
    assert isinstance(database.background_engine.pool, NullPool)


def test_engine_options_for_asyncpg(monkeypatch):
    monkeypatch.setattr(settings, "database_url", "postgresql+asyncpg://iaschool@db/iaschool")

    api = database._engine_options("iaschool_api", "60s")
    assert api["pool_size"] == 10
    assert api["pool_pre_ping"] is True
    assert api["connect_args"]["server_settings"]["application_name"] == "iaschool_api"

    tasks = database._engine_options("iaschool_background", "300s", pooled=False)
    assert tasks["poolclass"] is NullPool
    assert "pool_size" not in tasks
    assert tasks["connect_args"]["server_settings"]["statement_timeout"] == "300s"
