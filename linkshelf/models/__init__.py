# LinkShelf Models
from linkshelf.models.base import BaseModel
from linkshelf.models.password_reset_token import PasswordResetToken
from linkshelf.models.user import User

__all__ = [
    "BaseModel",
    "PasswordResetToken",
    "User",
]
