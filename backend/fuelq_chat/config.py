"""Configuration settings for the application."""
import os
from pathlib import Path

# Project root (backend directory)
BACKEND_ROOT = Path(__file__).parent.parent
PROJECT_ROOT = BACKEND_ROOT.parent

# Database configuration
DATA_DIR = Path(os.environ.get("FUELQ_DATA_DIR", PROJECT_ROOT / "data"))
DB_FILE = os.environ.get("FUELQ_DB_FILE", str(DATA_DIR / "chat.db"))
DB_TIMEOUT = 30.0  # 30 seconds timeout for busy database

# Uploaded chat attachments
UPLOAD_DIR = Path(os.environ.get("FUELQ_UPLOAD_DIR", DATA_DIR / "uploads"))
UPLOAD_URL_PREFIX = "/uploads"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# Message history paging
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

# Server-side typing entries older than this are swept
TYPING_EXPIRY_SECONDS = 5.0

# CORS settings
CORS_ORIGINS = ["*"]  # In production, specify allowed origins
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = ["*"]
CORS_ALLOW_HEADERS = ["*"]

# Application settings
APP_TITLE = "FuelQ Chat"
APP_VERSION = "1.0.0"
HOST = os.environ.get("FUELQ_HOST", "localhost")
PORT = int(os.environ.get("FUELQ_PORT", "8000"))
LOG_LEVEL = os.environ.get("FUELQ_LOG_LEVEL", "INFO")

ROOM_CATEGORIES = (
    "general", "hydrogen", "solar", "wind", "biofuels", "geothermal", "nuclear",
)
