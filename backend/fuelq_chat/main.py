"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import (
    APP_TITLE,
    APP_VERSION,
    CORS_ORIGINS,
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOW_METHODS,
    CORS_ALLOW_HEADERS,
    HOST,
    LOG_LEVEL,
    PORT,
    UPLOAD_DIR,
    UPLOAD_URL_PREFIX,
)
from .database import get_db, init_db

# Import routers
from .auth.routes import router as auth_router
from .chat.routes import router as chat_router
from .chat.websocket import router as realtime_router
from .users.routes import router as users_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# httpx/httpcore log every connection; websockets logs every frame at DEBUG
for _noisy in ("httpx", "httpcore", "websockets"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database on startup."""
    init_db()

    with get_db() as conn:
        user_count = conn.execute('SELECT COUNT(*) as count FROM users').fetchone()['count']
        room_count = conn.execute('SELECT COUNT(*) as count FROM rooms').fetchone()['count']

    logger.info("Users: %d, Rooms: %d", user_count, room_count)
    yield
    logger.info("Shutting down chat server")


# Create FastAPI app
app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
)

# Uploaded attachments
app.mount(
    UPLOAD_URL_PREFIX,
    StaticFiles(directory=str(UPLOAD_DIR), check_dir=False),
    name="uploads",
)

# Register API routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(chat_router, prefix="/api")
app.include_router(realtime_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


def run():
    """Run the server with uvicorn."""
    import uvicorn

    logger.info("Starting FuelQ chat server on %s:%d", HOST, PORT)
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
