"""
Local identity record.

One row per (provider, provider_id). Email is informational and may repeat
across providers or be empty.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from authgate.core.database import Base
from authgate.models.base import UTCDateTime, utc_now


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("provider", "provider_id", name="uq_users_provider_provider_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(Text, nullable=False, default="")
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    first_login: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    last_login: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now, index=True)
    login_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_admin_dict(self) -> Dict[str, Any]:
        """Row as listed by /admin/users."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "provider": self.provider,
            "avatar_url": self.avatar_url,
            "first_login": self.first_login.isoformat() if self.first_login else None,
            "last_login": self.last_login.isoformat() if self.last_login else None,
            "login_count": self.login_count,
        }

    def __repr__(self) -> str:
        return f"<User(id={self.id}, provider={self.provider}, provider_id={self.provider_id})>"
