"""Business logic for user lookups."""
from typing import Dict, List, Optional

from ..database import get_db
from ..chat.hub import hub


def _user_from_row(row) -> Dict:
    return {
        'id': row['id'],
        'name': row['display_name'],
        'avatar': row['avatar'],
        'status': hub.presence.status(row['id']),
    }


def get_user(user_id: str) -> Optional[Dict]:
    """Get a user with their current presence. Returns None if not found."""
    with get_db() as conn:
        cursor = conn.execute(
            'SELECT id, display_name, avatar FROM users WHERE id = ?',
            (user_id,)
        )
        row = cursor.fetchone()
        return _user_from_row(row) if row else None


def get_users(user_ids: List[str]) -> List[Dict]:
    """Get several users, skipping unknown ids, in the order given."""
    users = []
    for user_id in user_ids:
        user = get_user(user_id)
        if user:
            users.append(user)
    return users


def get_all_users() -> List[Dict]:
    """Get all users."""
    with get_db() as conn:
        cursor = conn.execute('''
            SELECT id, display_name, avatar
            FROM users
            ORDER BY id
        ''')
        return [_user_from_row(row) for row in cursor]
