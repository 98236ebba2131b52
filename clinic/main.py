# clinic/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clinic.core.config import settings
from clinic.api.exception_handlers import register_exception_handlers
from clinic.api.router import api_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("clinic")

app = FastAPI(
    title=settings.PROJECT_NAME,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.on_event("startup")
def create_tables_on_startup():
    if settings.AUTO_CREATE_TABLES:
        from clinic.db.init_db import create_tables
        create_tables()
        logger.info("Tables created (AUTO_CREATE_TABLES=1)")


# Health
@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} running", "version": "v1"}
