import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from exam_portal.api.v1.api import api_router
from exam_portal.core.config import get_settings
from exam_portal.core.errors import register_exception_handlers
from exam_portal.db.session import init_db

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title=settings.project_name)

# CORS for the single-page client; configure origins via EXAM_CORS_ORIGINS / CORS_ORIGINS env (comma-separated)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)


@app.on_event("startup")
def startup() -> None:
    init_db()


@app.get("/health", include_in_schema=False)
def health() -> dict:
    return {"status": "ok"}


app.include_router(api_router, prefix=settings.api_prefix)
