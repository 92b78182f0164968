from typing import List
from carwash.models.service_model import SERVICE_CATALOG, Service


def get_services(include_hidden: bool = False) -> List[Service]:
    return [
        service
        for service in SERVICE_CATALOG.values()
        if include_hidden or not service.hidden
    ]
