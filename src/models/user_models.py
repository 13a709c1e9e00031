# tradeguard/src/models/user_models.py
"""
User ORM model. The role column backs the role directory (admins and
arbitrators are notified about and allowed to act on disputes).
"""
from sqlalchemy import Column, String, Boolean
from src.models.base import Base, UTCDateTime, new_id, utcnow


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=new_id, index=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(20), default="user", nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
