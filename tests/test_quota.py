import pytest

from askq import quota


@pytest.mark.asyncio
async def test_count_defaults_to_zero(db_session):
    assert await quota.get_count("198.51.100.1", db_session) == 0


@pytest.mark.asyncio
async def test_increment_upserts_and_returns_new_count(db_session):
    assert await quota.increment("198.51.100.1", db_session) == 1
    assert await quota.increment("198.51.100.1", db_session) == 2
    assert await quota.get_count("198.51.100.1", db_session) == 2
    assert await quota.get_count("198.51.100.2", db_session) == 0


@pytest.mark.asyncio
async def test_is_exhausted_at_free_limit(db_session):
    for _ in range(quota.FREE_LIMIT - 1):
        await quota.increment("198.51.100.1", db_session)
    assert await quota.is_exhausted("198.51.100.1", db_session) == (False, quota.FREE_LIMIT - 1)

    await quota.increment("198.51.100.1", db_session)
    assert await quota.is_exhausted("198.51.100.1", db_session) == (True, quota.FREE_LIMIT)


def test_quota_key_prefers_first_forwarded_entry():
    headers = {"x-forwarded-for": "203.0.113.5, 10.0.0.1", "x-real-ip": "10.0.0.2"}
    assert quota.quota_key(headers) == "203.0.113.5"


def test_quota_key_falls_back_to_real_ip():
    assert quota.quota_key({"x-real-ip": "10.0.0.2"}) == "10.0.0.2"


def test_quota_key_unknown_bucket():
    assert quota.quota_key({}) == "unknown"
    assert quota.quota_key({}, device_id="dev-1") == "device:dev-1"
    # a real address is never replaced by the device
    assert quota.quota_key({"x-real-ip": "10.0.0.2"}, device_id="dev-1") == "10.0.0.2"


def test_dialect_insert_rejects_backends_without_on_conflict():
    from unittest.mock import MagicMock

    from askq.database import dialect_insert
    from askq.models import AnonymousCount

    db = MagicMock()
    db.get_bind.return_value.dialect.name = "mysql"
    with pytest.raises(RuntimeError, match="mysql"):
        dialect_insert(db, AnonymousCount.__table__)

    db.get_bind.return_value.dialect.name = "sqlite"
    stmt = dialect_insert(db, AnonymousCount.__table__)
    assert hasattr(stmt, "on_conflict_do_update")
