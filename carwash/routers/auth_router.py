from fastapi import APIRouter, Depends
from carwash.models.auth_model import User
from carwash.utils.auth import require_auth, require_carwash_admin


router = APIRouter(prefix="/api", tags=["auth"])


@router.get("/user", response_model=User)
async def get_user(current_user: User = Depends(require_auth)):
    return current_user


@router.get("/carwash-admin", response_model=User)
async def check_carwash_admin(admin_user: User = Depends(require_carwash_admin)):
    return admin_user
