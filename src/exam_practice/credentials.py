from __future__ import annotations

import logging

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Credential, utcnow

logger = logging.getLogger(__name__)


async def get_credential(s: AsyncSession, tg_user_id: int) -> str | None:
    row = await s.get(Credential, tg_user_id)
    if row is None or not row.api_key:
        return None
    return row.api_key


async def set_credential(s: AsyncSession, tg_user_id: int, api_key: str) -> None:
    api_key = (api_key or "").strip()
    if not api_key:
        raise ValueError("credential must not be empty")
    row = await s.get(Credential, tg_user_id)
    if row is None:
        s.add(Credential(tg_user_id=tg_user_id, api_key=api_key))
    else:
        row.api_key = api_key
        row.updated_at = utcnow()
    await s.commit()
    logger.info("credential_saved tg_user_id=%s key_len=%s", tg_user_id, len(api_key))


async def forget_credential(s: AsyncSession, tg_user_id: int) -> bool:
    result = await s.execute(delete(Credential).where(Credential.tg_user_id == tg_user_id))
    await s.commit()
    removed = bool(result.rowcount)
    logger.info("credential_removed tg_user_id=%s removed=%s", tg_user_id, removed)
    return removed
