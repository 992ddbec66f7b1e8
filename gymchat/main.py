import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from gymchat.config.settings import settings
from gymchat.database.connection import close_mongo_connection, connect_to_mongo, get_database
from gymchat.exceptions import EmptyContent, InvalidParticipant, StoreUnavailable
from gymchat.repositories.conversation_repository import ConversationRepository
from gymchat.routers.chat import router as chat_router
from gymchat.routers.conversations import router as conversations_router
from gymchat.utils.realtime_bus import close_bus


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    try:
        await ConversationRepository(get_database()).ensure_indexes()
    except StoreUnavailable as exc:
        # the service can still start; queries fall back to collection scans
        logger.warning("Index creation skipped: %s", exc.__cause__ or exc)
    try:
        yield
    finally:
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="Gym member messaging", lifespan=lifespan)


@app.exception_handler(InvalidParticipant)
@app.exception_handler(EmptyContent)
async def invalid_request_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error("Store unavailable while serving %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": "Message store unavailable"})


app.include_router(chat_router)
app.include_router(conversations_router)


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "chat", "admin_id": settings.ADMIN_ID}
