from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    CARWASH_ADMIN = "carwash_admin"


class User(BaseModel):
    id: int
    email: EmailStr
    name: Optional[str] = None
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = None

    @property
    def is_carwash_admin(self) -> bool:
        return self.role == UserRole.CARWASH_ADMIN

    @property
    def can_act_for_others(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.CARWASH_ADMIN)
