import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import AsyncSessionLocal, init_db
from exceptions import KycError
from logging_config import setup_logging
from services.status import seed_catalog
from api.admin import router as admin_router
from api.business_kyc import router as business_kyc_router

setup_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.check_secrets()
    await init_db()
    async with AsyncSessionLocal() as session:
        await seed_catalog(session)
        await session.commit()
    logger.info("%s started", settings.app_name)
    yield


app = FastAPI(
    title=settings.app_name,
    description="Business KYC onboarding workflow API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KycError)
async def kyc_error_handler(request: Request, exc: KycError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(business_kyc_router)
app.include_router(admin_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
