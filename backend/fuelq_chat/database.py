"""Database utilities and connection management."""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path

from .config import DB_FILE, DB_TIMEOUT

logger = logging.getLogger(__name__)

# Thread-local storage for database connections
thread_local = threading.local()


@contextmanager
def get_db():
    """Get a database connection with proper configuration."""
    if getattr(thread_local, 'connection', None) is None:
        thread_local.connection = sqlite3.connect(
            DB_FILE,
            timeout=DB_TIMEOUT,
            check_same_thread=False
        )
        thread_local.connection.row_factory = sqlite3.Row
        # Enable WAL mode for better concurrency
        thread_local.connection.execute('PRAGMA journal_mode=WAL')
        thread_local.connection.execute('PRAGMA foreign_keys=ON')

    try:
        yield thread_local.connection
    except Exception:
        thread_local.connection.rollback()
        raise


def close_db():
    """Close this thread's connection, if any."""
    conn = getattr(thread_local, 'connection', None)
    if conn is not None:
        conn.close()
        thread_local.connection = None


def init_db():
    """Initialize the database with required tables."""
    Path(DB_FILE).parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                display_name TEXT NOT NULL,
                avatar TEXT,
                created_at TEXT NOT NULL
            )
        ''')

        conn.execute('''
            CREATE TABLE IF NOT EXISTS sessions (
                token TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        ''')

        conn.execute('''
            CREATE TABLE IF NOT EXISTS rooms (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                category TEXT NOT NULL DEFAULT 'general',
                is_private BOOLEAN NOT NULL DEFAULT 0,
                created_by TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        ''')

        conn.execute('''
            CREATE TABLE IF NOT EXISTS room_members (
                room_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                joined_at TEXT NOT NULL,
                PRIMARY KEY (room_id, user_id),
                FOREIGN KEY (room_id) REFERENCES rooms(id) ON DELETE CASCADE
            )
        ''')

        # Exactly one of room_id / recipient_id is set
        conn.execute('''
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                room_id INTEGER,
                sender_id TEXT NOT NULL,
                recipient_id TEXT,
                text TEXT NOT NULL DEFAULT '',
                file_name TEXT,
                file_type TEXT,
                file_size INTEGER,
                file_url TEXT,
                created_at TEXT NOT NULL,
                CHECK ((room_id IS NULL) <> (recipient_id IS NULL))
            )
        ''')

        conn.execute('''
            CREATE INDEX IF NOT EXISTS idx_messages_room_id
            ON messages(room_id, id)
        ''')

        conn.execute('''
            CREATE INDEX IF NOT EXISTS idx_messages_direct
            ON messages(sender_id, recipient_id, id)
        ''')

        conn.execute('''
            CREATE TABLE IF NOT EXISTS message_likes (
                message_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                PRIMARY KEY (message_id, user_id),
                FOREIGN KEY (message_id) REFERENCES messages(id) ON DELETE CASCADE
            )
        ''')

        conn.execute('''
            CREATE TABLE IF NOT EXISTS unread_counters (
                user_id TEXT NOT NULL,
                conversation TEXT NOT NULL,
                count INTEGER NOT NULL DEFAULT 0 CHECK (count >= 0),
                PRIMARY KEY (user_id, conversation)
            )
        ''')

        conn.execute('''
            CREATE TABLE IF NOT EXISTS connection_requests (
                sender_id TEXT NOT NULL,
                recipient_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY (sender_id, recipient_id)
            )
        ''')

        conn.execute('''
            CREATE TABLE IF NOT EXISTS contacts (
                user_id TEXT NOT NULL,
                contact_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY (user_id, contact_id)
            )
        ''')

        conn.commit()

    logger.info("Database ready at %s", DB_FILE)
