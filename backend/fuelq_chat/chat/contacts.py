"""Connection requests and the direct-message contacts they create."""
from datetime import datetime, timezone
from typing import Dict, List

from ..database import get_db
from ..errors import ConflictError, NotFoundError, ValidationError


def are_contacts(user_a: str, user_b: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            'SELECT 1 FROM contacts WHERE user_id = ? AND contact_id = ?',
            (user_a, user_b)
        )
        return cursor.fetchone() is not None


def get_contacts(user_id: str) -> List[str]:
    with get_db() as conn:
        cursor = conn.execute(
            'SELECT contact_id FROM contacts WHERE user_id = ? ORDER BY created_at, contact_id',
            (user_id,)
        )
        return [row['contact_id'] for row in cursor]


def send_request(sender_id: str, recipient_id: str) -> Dict:
    """Propose a direct conversation to another user."""
    if sender_id == recipient_id:
        raise ValidationError("Cannot connect with yourself")

    with get_db() as conn:
        row = conn.execute(
            'SELECT id, display_name, avatar FROM users WHERE id = ?', (sender_id,)
        ).fetchone()
        if not conn.execute('SELECT 1 FROM users WHERE id = ?', (recipient_id,)).fetchone():
            raise NotFoundError("User not found")

        if are_contacts(sender_id, recipient_id):
            raise ConflictError("Already connected")

        pending = conn.execute('''
            SELECT 1 FROM connection_requests
            WHERE (sender_id = ? AND recipient_id = ?) OR (sender_id = ? AND recipient_id = ?)
        ''', (sender_id, recipient_id, recipient_id, sender_id)).fetchone()
        if pending:
            raise ConflictError("A connection request is already pending")

        now = datetime.now(timezone.utc).isoformat()
        conn.execute('''
            INSERT INTO connection_requests (sender_id, recipient_id, created_at)
            VALUES (?, ?, ?)
        ''', (sender_id, recipient_id, now))
        conn.commit()

    return {
        'id': row['id'],
        'name': row['display_name'],
        'avatar': row['avatar'],
        'createdAt': now,
    }


def get_pending_requests(recipient_id: str) -> List[Dict]:
    """Requests addressed to a user, oldest first."""
    with get_db() as conn:
        cursor = conn.execute('''
            SELECT u.id, u.display_name, u.avatar, cr.created_at
            FROM connection_requests cr
            JOIN users u ON u.id = cr.sender_id
            WHERE cr.recipient_id = ?
            ORDER BY cr.created_at
        ''', (recipient_id,))
        return [
            {
                'id': row['id'],
                'name': row['display_name'],
                'avatar': row['avatar'],
                'createdAt': row['created_at'],
            }
            for row in cursor
        ]


def _delete_request(sender_id: str, recipient_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            'DELETE FROM connection_requests WHERE sender_id = ? AND recipient_id = ?',
            (sender_id, recipient_id)
        )
        conn.commit()
        return cursor.rowcount > 0


def accept_request(recipient_id: str, sender_id: str):
    """Accept a pending request, making the two users contacts."""
    if not _delete_request(sender_id, recipient_id):
        raise NotFoundError("Connection request not found")

    now = datetime.now(timezone.utc).isoformat()
    with get_db() as conn:
        conn.executemany(
            'INSERT OR IGNORE INTO contacts (user_id, contact_id, created_at) VALUES (?, ?, ?)',
            [(recipient_id, sender_id, now), (sender_id, recipient_id, now)]
        )
        conn.commit()


def decline_request(recipient_id: str, sender_id: str):
    """Discard a pending request."""
    if not _delete_request(sender_id, recipient_id):
        raise NotFoundError("Connection request not found")
