from fastapi import APIRouter, Depends
from typing import List, Optional
from carwash.models.auth_model import User
from carwash.models.service_model import Service
from carwash.services.catalog_service import get_services
from carwash.utils.auth import get_current_user


router = APIRouter(prefix="/api", tags=["service"])


@router.get("/services", response_model=List[Service])
async def get_services_endpoint(current_user: Optional[User] = Depends(get_current_user)):
    include_hidden = bool(current_user and current_user.is_carwash_admin)
    return get_services(include_hidden)
