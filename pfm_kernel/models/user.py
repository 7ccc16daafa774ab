"""
Module: pfm_kernel.models.user
Responsibility: ORM persistence for application users -- the owner scope of
    every account, journal, rule group and rule.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from pfm_kernel.db.base import TrackedBase


class User(TrackedBase):
    """An application user.  All financial data is scoped to one user."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
