import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from carwash.config import CORS_ORIGINS, LOG_LEVEL, load_booking_policy
from carwash.db.database import close_pool, create_pool, init_schema
from carwash.routers import (
    auth_router,
    blocker_router,
    carwash_router,
    reservation_router,
    service_router,
)
from carwash.services.background_service import reminder_loop

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.policy = load_booking_policy()
    app.state.db_pool = None
    app.state.reminders = None
    try:
        app.state.db_pool = await create_pool()
        await init_schema(app.state.db_pool)
        app.state.reminders = asyncio.create_task(
            reminder_loop(app.state.db_pool, app.state.policy)
        )
        yield
    except Exception:
        logger.exception("Service failed to start")
        raise
    finally:
        if app.state.reminders and not app.state.reminders.done():
            app.state.reminders.cancel()
            await asyncio.gather(app.state.reminders, return_exceptions=True)
        app.state.reminders = None
        if app.state.db_pool:
            await close_pool(app.state.db_pool)
            app.state.db_pool = None


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router.router)
app.include_router(reservation_router.router)
app.include_router(carwash_router.router)
app.include_router(blocker_router.router)
app.include_router(service_router.router)


@app.get("/status")
async def check_status():
    if not getattr(app.state, "db_pool", None) or not getattr(app.state, "reminders", None):
        raise HTTPException(status_code=500, detail="Service is not available")
    return {"status": "success", "message": "Service is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
