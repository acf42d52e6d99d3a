import os
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from .database import dialect_insert
from .models import AnonymousCount
from .utils import now_utc, client_ip

FREE_LIMIT = int(os.getenv("FREE_LIMIT", "10"))
UNKNOWN_IP = "unknown"


def quota_key(headers, device_id: Optional[str] = None) -> str:
    """Bucket key for anonymous usage.

    Clients that arrive without any forwarding header would all share the
    "unknown" bucket; when they identify a device, that device gets its own.
    """
    ip = client_ip(headers)
    if ip == UNKNOWN_IP and device_id:
        return f"device:{device_id}"
    return ip


async def get_count(ip: str, db: AsyncSession) -> int:
    q = await db.execute(select(AnonymousCount.count).where(AnonymousCount.ip == ip))
    count = q.scalar_one_or_none()
    return count or 0


async def increment(ip: str, db: AsyncSession) -> int:
    now = now_utc()
    stmt = dialect_insert(db, AnonymousCount.__table__).values(ip=ip, count=1, updated_at=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=["ip"],
        set_={"count": AnonymousCount.count + 1, "updated_at": now},
    )
    await db.execute(stmt)
    await db.commit()
    return await get_count(ip, db)


async def is_exhausted(ip: str, db: AsyncSession) -> tuple[bool, int]:
    count = await get_count(ip, db)
    return count >= FREE_LIMIT, count
