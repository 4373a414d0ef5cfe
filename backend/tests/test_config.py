from shared.config import Settings


def test_default_settings():
    s = Settings()
    assert "postgresql+asyncpg" in s.DATABASE_URL
    assert "redis" in s.REDIS_URL
    assert s.JWT_ALGORITHM == "HS256"
    assert s.SESSION_LOCK_BACKEND == "redis"
    assert s.POLL_ACTIVITY_LIMIT == 50
    assert s.POLL_PRESENCE_WINDOW_SECONDS == 300
    assert s.POLL_PRESENCE_LIMIT == 100
    assert s.POLL_DEFAULT_LOOKBACK_SECONDS == 60
    assert s.POLL_SETTLE_SECONDS == 1.0
    assert s.PRESENCE_RETENTION_DAYS == 7


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://test:test@db:5432/testdb")
    monkeypatch.setenv("SESSION_LOCK_BACKEND", "local")
    monkeypatch.setenv("PRESENCE_STALENESS_SECONDS", "30")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    s = Settings()
    assert s.DATABASE_URL == "postgresql+asyncpg://test:test@db:5432/testdb"
    assert s.SESSION_LOCK_BACKEND == "local"
    assert s.PRESENCE_STALENESS_SECONDS == 30
    assert s.LOG_LEVEL == "debug"
