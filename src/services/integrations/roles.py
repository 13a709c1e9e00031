# tradeguard/src/services/integrations/roles.py
from abc import ABC, abstractmethod
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.models import User


class RoleDirectory(ABC):
    @abstractmethod
    async def get_users_with_role(self, role: str) -> List[str]:
        pass


class SqlRoleDirectory(RoleDirectory):
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_users_with_role(self, role):
        async with self.session_factory() as session:
            result = await session.execute(
                select(User.user_id).where(User.role == role, User.is_active == True).order_by(User.user_id)
            )
            return list(result.scalars().all())
