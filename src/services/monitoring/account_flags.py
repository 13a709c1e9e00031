from datetime import datetime
from typing import Optional

import redis.asyncio as redis

from src.models.base import utcnow
from src.services.api.schemas import AccountFlag
from src.services.integrations.audit import Auditor


class AccountFlagRegistry:
    """
    Out-of-band account flags set by compliance staff. A flagged account is
    restricted from trading regardless of its alerts.
    """

    KEY_TEMPLATE = "account:flag:{user_id}"

    def __init__(self, redis_client: redis.Redis, auditor: Auditor):
        self.redis = redis_client
        self.auditor = auditor

    def _key(self, user_id: str) -> str:
        return self.KEY_TEMPLATE.format(user_id=user_id)

    async def flag_account(self, user_id: str, reason: str, flagged_by: str) -> AccountFlag:
        flag = AccountFlag(user_id=user_id, reason=reason, flagged_by=flagged_by, flagged_at=utcnow())
        await self.redis.hset(
            self._key(user_id),
            mapping={"reason": reason, "flagged_by": flagged_by, "flagged_at": flag.flagged_at.isoformat()},
        )
        await self.auditor.record("account_flagged", "user", user_id, flagged_by, {"reason": reason})
        return flag

    async def unflag_account(self, user_id: str, actor_id: str) -> bool:
        removed = await self.redis.delete(self._key(user_id))
        if removed:
            await self.auditor.record("account_unflagged", "user", user_id, actor_id)
        return bool(removed)

    async def get_flag(self, user_id: str) -> Optional[AccountFlag]:
        data = await self.redis.hgetall(self._key(user_id))
        if not data:
            return None
        return AccountFlag(
            user_id=user_id,
            reason=data.get("reason", ""),
            flagged_by=data.get("flagged_by", ""),
            flagged_at=datetime.fromisoformat(data["flagged_at"]) if data.get("flagged_at") else utcnow(),
        )
