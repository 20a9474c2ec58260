"""User model for authentication and authorization."""

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from linkshelf.models.base import BaseModel


class User(BaseModel):
    """Registered user.

    Username and email are stored trimmed and lowercased. ``roles`` is an
    ordered list of role identifiers; the first entry is the primary role
    embedded in issued tokens.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    # Reassign rather than mutate in place; JSON columns do not track list mutation
    roles: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.username}>"
