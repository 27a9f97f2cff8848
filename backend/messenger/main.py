import logging

from fastapi import FastAPI

from messenger.db.init_db import init_db
from messenger.api.routes.auth import router as auth_router
from messenger.api.routes.contacts import router as contacts_router
from messenger.api.routes.conversations import router as conversations_router
from messenger.api.routes.messages import router as messages_router
from messenger.api.routes.users import router as users_router
from messenger.api.routes.ws import router as ws_router
from messenger.core.config import settings
from messenger.core.logging import configure_logging
from messenger.realtime.registry import ConnectionRegistry

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="0.1.0")

app.include_router(auth_router)
app.include_router(contacts_router)
app.include_router(conversations_router)
app.include_router(messages_router)
app.include_router(users_router)
app.include_router(ws_router)


@app.on_event("startup")
def _startup() -> None:
    init_db()
    # one registry per process, handed to every channel's handler
    app.state.registry = ConnectionRegistry()
    logger.info("%s started (%s)", settings.app_name, settings.app_env)


@app.on_event("shutdown")
def _shutdown() -> None:
    logger.info("shutting down with %d live channels", len(app.state.registry))
    app.state.registry.clear()


@app.get("/health")
def health():
    return {"status": "ok"}
