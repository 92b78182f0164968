from fastapi import HTTPException, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import jwt
from carwash.config import JWT_KEY
from carwash.models.auth_model import User
from carwash.utils.dependencies import get_connection
import asyncpg

security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: asyncpg.Connection = Depends(get_connection),
) -> Optional[User]:
    if not credentials:
        return None
    try:
        payload = jwt.decode(credentials.credentials, JWT_KEY, algorithms=["HS256"])
        user_id = payload.get("user_id")
        if not user_id:
            return None
        select_query = "SELECT id, email, name, role, created_at FROM users WHERE id = $1"
        user_data = await db.fetchrow(select_query, user_id)
        if not user_data:
            return None
        return User(**dict(user_data))
    except (jwt.ExpiredSignatureError, jwt.InvalidTokenError):
        return None


async def require_auth(current_user: Optional[User] = Depends(get_current_user)) -> User:
    if not current_user:
        raise HTTPException(status_code=401, detail="Login is required")
    return current_user


async def require_carwash_admin(admin_user: User = Depends(require_auth)) -> User:
    if not admin_user.is_carwash_admin:
        raise HTTPException(status_code=403, detail="Car wash admin role is required")
    return admin_user
