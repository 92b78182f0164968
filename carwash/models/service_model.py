from enum import IntEnum
from typing import Optional
from pydantic import BaseModel


class ServiceType(IntEnum):
    EXTERIOR = 0
    INTERIOR = 1
    CARPET = 2
    SPOT_CLEANING = 3
    VIGNETTE_REMOVAL = 4
    POLISHING = 5
    AC_CLEANING_OZON = 6
    AC_CLEANING_BOMBA = 7
    # hidden from regular users
    BUG_REMOVAL = 8
    WHEEL_CLEANING = 9
    TIRE_CARE = 10
    LEATHER_CARE = 11
    PLASTIC_CARE = 12
    PRE_WASH = 13


class Service(BaseModel, frozen=True):
    type: ServiceType
    name: str
    description: Optional[str] = None
    time_in_minutes: int
    price: int
    price_mpv: int
    hidden: bool = False


SERVICE_CATALOG: dict[ServiceType, Service] = {
    service.type: service
    for service in [
        Service(type=ServiceType.EXTERIOR, name="exterior", time_in_minutes=12, price=3213, price_mpv=4017),
        Service(type=ServiceType.INTERIOR, name="interior", time_in_minutes=12, price=1607, price_mpv=2410),
        Service(
            type=ServiceType.CARPET,
            name="carpet",
            description="whole carpet cleaning, including all the seats",
            time_in_minutes=24,
            price=-1,
            price_mpv=-1,
        ),
        Service(
            type=ServiceType.SPOT_CLEANING,
            name="spot cleaning",
            description="partial cleaning of the carpet, only where it is needed",
            time_in_minutes=0,
            price=3534,
            price_mpv=3534,
        ),
        Service(
            type=ServiceType.VIGNETTE_REMOVAL,
            name="vignette removal",
            description="eg. highway vignettes on the windscreen",
            time_in_minutes=0,
            price=466,
            price_mpv=466,
        ),
        Service(
            type=ServiceType.POLISHING,
            name="polishing",
            description="for small scratches",
            time_in_minutes=0,
            price=4498,
            price_mpv=4498,
        ),
        Service(
            type=ServiceType.AC_CLEANING_OZON,
            name="AC cleaning 'ozon'",
            description="disinfects molecules with ozone",
            time_in_minutes=0,
            price=8033,
            price_mpv=8033,
        ),
        Service(
            type=ServiceType.AC_CLEANING_BOMBA,
            name="AC cleaning 'bomba'",
            description="blowing chemical spray in the AC system",
            time_in_minutes=0,
            price=6426,
            price_mpv=6426,
        ),
        Service(type=ServiceType.BUG_REMOVAL, name="bug removal", time_in_minutes=0, price=804, price_mpv=804, hidden=True),
        Service(type=ServiceType.WHEEL_CLEANING, name="wheel cleaning", time_in_minutes=0, price=964, price_mpv=964, hidden=True),
        Service(type=ServiceType.TIRE_CARE, name="tire care", time_in_minutes=0, price=804, price_mpv=804, hidden=True),
        Service(type=ServiceType.LEATHER_CARE, name="leather care", time_in_minutes=0, price=8033, price_mpv=8033, hidden=True),
        Service(type=ServiceType.PLASTIC_CARE, name="plastic care", time_in_minutes=0, price=7230, price_mpv=7230, hidden=True),
        Service(type=ServiceType.PRE_WASH, name="prewash", time_in_minutes=0, price=804, price_mpv=804, hidden=True),
    ]
}
