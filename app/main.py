# app/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from app.config import settings
from app.db import init_db
from app.errors import BookingError
from app.routers.availability_routes import router as availability_router
from app.routers.bookings_routes import router as bookings_router
from app.routers.consultants_routes import router as consultants_router
from app.routers.services_routes import router as services_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Consultation Booking API", lifespan=lifespan)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error("[%s] %s | Path=%s", exc.code, exc.message, request.url.path)
    else:
        logger.warning("[%s] %s | Path=%s", exc.code, exc.message, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.get("/health")
def health_check():
    return {"status": "ok"}


app.include_router(availability_router)
app.include_router(bookings_router)
app.include_router(services_router)
app.include_router(consultants_router)


def run():
    """Serve the API with uvicorn on the configured host and port."""
    uvicorn.run("app.main:app", host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    run()
