"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sharejoy.api.v1 import router as v1_router
from sharejoy.core.config import settings
from sharejoy.core.storage import build_storage
from sharejoy.services.accounts import AccountService
from sharejoy.services.credential_store import CredentialStore
from sharejoy.services.session import SessionState

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Build the credential store once and restore the persisted session.
    Single-client: every HTTP caller shares this one device session.
    """
    store = CredentialStore(build_storage(settings))
    session = SessionState(store)
    username = await session.load()
    logger.info("Startup session restored: logged_in=%s", username is not None)
    app.state.accounts = AccountService(store, session)
    yield


app = FastAPI(
    title="ShareJoy API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "ShareJoy API"}
