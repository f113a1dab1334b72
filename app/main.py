import logging

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import Base, engine
from app.models import device_token, user  # noqa: F401  (register tables)
from app.routers import push
from app.services.push_service import build_credential_provider, build_recipient_store
from app.utils.response import create_response, handle_exception

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

# CORS for SPA / API access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    if settings.RECIPIENT_STORE == "sql":
        Base.metadata.create_all(bind=engine)
    app.state.recipient_store = build_recipient_store()
    app.state.credential_provider = build_credential_provider()
    logger.info("Push dispatch collaborators ready (store=%s)", settings.RECIPIENT_STORE)


# Add routes
app.include_router(push.router)


@app.get("/")
def home():
    try:
        return create_response(
            message="Push API running",
            data={"service": "push-dispatch-backend"},
            status_code=status.HTTP_200_OK
        )
    except Exception as exc:
        return handle_exception(exc)


@app.get("/api-info")
def api_info():
    try:
        return create_response(
            message="API information",
            data={
                "service": settings.PROJECT_NAME,
                "docs_url": "/docs",
                "recipient_store": settings.RECIPIENT_STORE,
                "chunk_size": settings.PUSH_CHUNK_SIZE,
            },
            status_code=status.HTTP_200_OK
        )
    except Exception as exc:
        return handle_exception(exc)
