"""Business logic for authentication."""
import re
import secrets
from datetime import datetime, timezone
from typing import Dict, Optional

from ..database import get_db

USERNAME_RE = re.compile(r'^[a-zA-Z0-9]{3,20}$')


def validate_username(username: str) -> bool:
    """Validate a username: 3-20 letters and digits."""
    return bool(USERNAME_RE.match(username))


def user_exists(user_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute('SELECT 1 FROM users WHERE id = ?', (user_id,))
        return cursor.fetchone() is not None


def create_user(user_id: str, display_name: str, avatar: Optional[str] = None) -> Optional[Dict]:
    """Create a user. Returns None if the id is taken."""
    if user_exists(user_id):
        return None

    now = datetime.now(timezone.utc).isoformat()
    with get_db() as conn:
        conn.execute('''
            INSERT INTO users (id, display_name, avatar, created_at)
            VALUES (?, ?, ?, ?)
        ''', (user_id, display_name, avatar, now))
        conn.commit()

    return {'id': user_id, 'name': display_name, 'avatar': avatar}


def create_session_token(user_id: str) -> str:
    """Create and store an opaque session token for a user."""
    token = secrets.token_urlsafe(32)
    with get_db() as conn:
        conn.execute('''
            INSERT INTO sessions (token, user_id, created_at)
            VALUES (?, ?, ?)
        ''', (token, user_id, datetime.now(timezone.utc).isoformat()))
        conn.commit()
    return token


def get_user_from_session(token: str) -> Optional[str]:
    """Get the user id a session token belongs to."""
    with get_db() as conn:
        cursor = conn.execute('''
            SELECT s.user_id
            FROM sessions s
            JOIN users u ON u.id = s.user_id
            WHERE s.token = ?
        ''', (token,))
        row = cursor.fetchone()
        return row['user_id'] if row else None


def revoke_session(token: str) -> bool:
    """Delete a session token."""
    with get_db() as conn:
        cursor = conn.execute('DELETE FROM sessions WHERE token = ?', (token,))
        conn.commit()
        return cursor.rowcount > 0
