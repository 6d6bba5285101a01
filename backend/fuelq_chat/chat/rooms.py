"""Business logic for rooms and conversation access."""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .conversations import Conversation
from .contacts import are_contacts
from .store import get_unread
from ..config import ROOM_CATEGORIES
from ..database import get_db
from ..errors import NotFoundError, PermissionDeniedError, ValidationError

MAX_ROOM_NAME_LENGTH = 100


def _room_from_row(row, viewer_id: Optional[str] = None) -> Dict:
    room = {
        'id': row['id'],
        'name': row['name'],
        'description': row['description'],
        'category': row['category'],
        'isPrivate': bool(row['is_private']),
        'createdBy': row['created_by'],
        'createdAt': row['created_at'],
        'participantCount': row['participant_count'],
        'isMember': False,
        'unread': 0,
    }
    if viewer_id:
        room['isMember'] = is_member(row['id'], viewer_id)
        room['unread'] = get_unread(viewer_id, Conversation.room(row['id']).key)
    return room


_ROOM_SELECT = '''
    SELECT r.*, (SELECT COUNT(*) FROM room_members rm WHERE rm.room_id = r.id) AS participant_count
    FROM rooms r
'''


def validate_room_fields(name: str, category: str) -> str:
    """Validate room settings and return the cleaned name."""
    name = (name or '').strip()
    if not name:
        raise ValidationError("Room name is required")
    if len(name) > MAX_ROOM_NAME_LENGTH:
        raise ValidationError(f"Room name must be at most {MAX_ROOM_NAME_LENGTH} characters")
    if category not in ROOM_CATEGORIES:
        raise ValidationError(f"Unknown room category: {category}")
    return name


def create_room(
    name: str,
    created_by: str,
    description: str = '',
    category: str = 'general',
    is_private: bool = False,
) -> Dict:
    """Create a room; its creator becomes the first participant."""
    name = validate_room_fields(name, category)
    now = datetime.now(timezone.utc).isoformat()

    with get_db() as conn:
        cursor = conn.execute('''
            INSERT INTO rooms (name, description, category, is_private, created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (name, description.strip(), category, int(is_private), created_by, now))
        room_id = cursor.lastrowid
        conn.execute(
            'INSERT INTO room_members (room_id, user_id, joined_at) VALUES (?, ?, ?)',
            (room_id, created_by, now)
        )
        conn.commit()

    return get_room(room_id, created_by)


def get_room(room_id: int, viewer_id: Optional[str] = None) -> Optional[Dict]:
    """Get a room. Returns None if not found."""
    with get_db() as conn:
        cursor = conn.execute(f'{_ROOM_SELECT} WHERE r.id = ?', (room_id,))
        row = cursor.fetchone()
        return _room_from_row(row, viewer_id) if row else None


def require_room(room_id: int, viewer_id: Optional[str] = None) -> Dict:
    room = get_room(room_id, viewer_id)
    if not room:
        raise NotFoundError("Room not found")
    return room


def get_user_rooms(user_id: str) -> List[Dict]:
    """Get rooms visible to a user: all public rooms + private rooms they're in."""
    with get_db() as conn:
        cursor = conn.execute(f'''
            {_ROOM_SELECT}
            WHERE r.is_private = 0
               OR r.id IN (SELECT room_id FROM room_members WHERE user_id = ?)
            ORDER BY r.id
        ''', (user_id,))
        return [_room_from_row(row, user_id) for row in cursor]


def update_room(
    room_id: int,
    user_id: str,
    name: str,
    description: str = '',
    category: str = 'general',
    is_private: bool = False,
) -> Dict:
    """Change a room's settings. Only participants may do so."""
    require_room(room_id)
    if not is_member(room_id, user_id):
        raise PermissionDeniedError("Only participants can change room settings")
    name = validate_room_fields(name, category)

    with get_db() as conn:
        conn.execute('''
            UPDATE rooms SET name = ?, description = ?, category = ?, is_private = ?
            WHERE id = ?
        ''', (name, description.strip(), category, int(is_private), room_id))
        conn.commit()

    return get_room(room_id, user_id)


# --- Participants ---

def is_member(room_id: int, user_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            'SELECT 1 FROM room_members WHERE room_id = ? AND user_id = ?',
            (room_id, user_id)
        )
        return cursor.fetchone() is not None


def get_room_members(room_id: int) -> List[str]:
    """Get participant ids of a room."""
    with get_db() as conn:
        cursor = conn.execute(
            'SELECT user_id FROM room_members WHERE room_id = ? ORDER BY joined_at, user_id',
            (room_id,)
        )
        return [row['user_id'] for row in cursor]


def _add_member(room_id: int, user_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            'INSERT OR IGNORE INTO room_members (room_id, user_id, joined_at) VALUES (?, ?, ?)',
            (room_id, user_id, datetime.now(timezone.utc).isoformat())
        )
        conn.commit()
        return cursor.rowcount > 0


def join_room(room_id: int, user_id: str) -> bool:
    """Join a public room. Returns False if already a participant."""
    room = require_room(room_id)
    if room['isPrivate'] and not is_member(room_id, user_id):
        raise PermissionDeniedError("This room is private")
    return _add_member(room_id, user_id)


def add_participant(room_id: int, inviter_id: str, user_id: str) -> bool:
    """Add a contact of a participant to a room."""
    require_room(room_id)
    if not is_member(room_id, inviter_id):
        raise PermissionDeniedError("Only participants can add people")
    if not are_contacts(inviter_id, user_id):
        raise PermissionDeniedError("You can only add your contacts")
    return _add_member(room_id, user_id)


def leave_room(room_id: int, user_id: str) -> bool:
    """Leave a room. Returns False if not a participant."""
    require_room(room_id)
    with get_db() as conn:
        cursor = conn.execute(
            'DELETE FROM room_members WHERE room_id = ? AND user_id = ?',
            (room_id, user_id)
        )
        conn.commit()
        return cursor.rowcount > 0


# --- Conversation access ---

def participants_of(conversation: Conversation) -> List[str]:
    """Everyone a message in the conversation is delivered to."""
    if conversation.is_room:
        return get_room_members(conversation.room_id)
    return list(conversation.users)


def check_read_access(conversation: Conversation, user_id: str):
    """Raise unless the user may read the conversation."""
    if conversation.is_room:
        room = require_room(conversation.room_id)
        if room['isPrivate'] and not is_member(conversation.room_id, user_id):
            raise PermissionDeniedError("This room is private")
    elif user_id not in conversation.users:
        raise PermissionDeniedError()


def ensure_can_post(conversation: Conversation, user_id: str):
    """Raise unless the user may post; joins public rooms on first post."""
    check_read_access(conversation, user_id)
    if conversation.is_room:
        _add_member(conversation.room_id, user_id)
        return

    other = conversation.other(user_id)
    with get_db() as conn:
        if not conn.execute('SELECT 1 FROM users WHERE id = ?', (other,)).fetchone():
            raise NotFoundError("User not found")
    if not are_contacts(user_id, other):
        raise PermissionDeniedError("You can only message your contacts")


def get_visible_users(user_id: str) -> List[str]:
    """Users who see this user's presence: contacts and room co-participants."""
    with get_db() as conn:
        cursor = conn.execute('''
            SELECT contact_id AS user_id FROM contacts WHERE user_id = ?
            UNION
            SELECT rm.user_id FROM room_members rm
            WHERE rm.room_id IN (SELECT room_id FROM room_members WHERE user_id = ?)
        ''', (user_id, user_id))
        return [row['user_id'] for row in cursor if row['user_id'] != user_id]
