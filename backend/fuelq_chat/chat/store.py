"""Message storage, likes and unread counters."""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .conversations import Conversation, message_conversation
from ..config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..database import get_db

_MESSAGE_SELECT = '''
    SELECT m.id, m.room_id, m.sender_id, m.recipient_id, m.text,
           m.file_name, m.file_type, m.file_size, m.file_url, m.created_at,
           u.display_name AS author_name, u.avatar AS author_avatar,
           (SELECT COUNT(*) FROM message_likes l WHERE l.message_id = m.id) AS likes_count,
           EXISTS (
               SELECT 1 FROM message_likes l
               WHERE l.message_id = m.id AND l.user_id = ?
           ) AS is_liked
    FROM messages m
    LEFT JOIN users u ON u.id = m.sender_id
'''


def _message_from_row(row) -> Dict:
    message = {
        'id': row['id'],
        'roomId': row['room_id'],
        'recipientId': row['recipient_id'],
        'senderId': row['sender_id'],
        'authorName': row['author_name'] or row['sender_id'],
        'authorAvatar': row['author_avatar'],
        'text': row['text'],
        'file': None,
        'timestamp': row['created_at'],
        'likesCount': row['likes_count'],
        'isLiked': bool(row['is_liked']),
    }
    if row['file_url']:
        message['file'] = {
            'name': row['file_name'],
            'type': row['file_type'],
            'size': row['file_size'],
            'url': row['file_url'],
        }
    message['conversation'] = message_conversation(message).key
    return message


def clamp_page_size(limit: Optional[int]) -> int:
    if not limit:
        return DEFAULT_PAGE_SIZE
    return max(1, min(int(limit), MAX_PAGE_SIZE))


class MessageLog:
    """Append-only, id-ordered message log of one conversation."""

    def __init__(self, conversation: Conversation):
        self.conversation = conversation

    def append(self, author_id: str, text: str = '', file: Optional[Dict] = None) -> Dict:
        """Store a message and return it with its durable id."""
        timestamp = datetime.now(timezone.utc).isoformat()
        if self.conversation.is_room:
            room_id, recipient_id = self.conversation.room_id, None
        else:
            room_id, recipient_id = None, self.conversation.other(author_id)
        file = file or {}

        with get_db() as conn:
            cursor = conn.execute('''
                INSERT INTO messages (room_id, sender_id, recipient_id, text,
                                      file_name, file_type, file_size, file_url, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (room_id, author_id, recipient_id, text,
                  file.get('name'), file.get('type'), file.get('size'), file.get('url'),
                  timestamp))
            conn.commit()
            message_id = cursor.lastrowid

        return get_message(message_id, author_id)

    def list(
        self,
        viewer_id: str,
        before: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Tuple[List[Dict], bool]:
        """Get the newest page of messages older than ``before``.

        Returns the page ordered oldest to newest and whether older
        messages remain. Pass the smallest id of a page as ``before`` to
        fetch the page preceding it.
        """
        limit = clamp_page_size(limit)
        where, params = self.conversation.where_clause()
        if before is not None:
            where += " AND m.id < ?"
            params.append(before)

        with get_db() as conn:
            cursor = conn.execute(
                f'{_MESSAGE_SELECT} WHERE {where} ORDER BY m.id DESC LIMIT ?',
                [viewer_id, *params, limit + 1]
            )
            rows = cursor.fetchall()

        has_more = len(rows) > limit
        messages = [_message_from_row(row) for row in rows[:limit]]
        messages.reverse()
        return messages, has_more

    def mark_read(self, viewer_id: str):
        """Reset the viewer's unread counter for this conversation."""
        mark_read(self.conversation.key, viewer_id)


def get_message(message_id: int, viewer_id: Optional[str] = None) -> Optional[Dict]:
    """Get one message as seen by ``viewer_id``."""
    with get_db() as conn:
        cursor = conn.execute(
            f'{_MESSAGE_SELECT} WHERE m.id = ?',
            (viewer_id, message_id)
        )
        row = cursor.fetchone()
        return _message_from_row(row) if row else None


def like_message(message_id: int, user_id: str) -> int:
    """Add a like. Liking twice is a no-op. Returns the like count."""
    with get_db() as conn:
        conn.execute(
            'INSERT OR IGNORE INTO message_likes (message_id, user_id) VALUES (?, ?)',
            (message_id, user_id)
        )
        conn.commit()
    return count_likes(message_id)


def unlike_message(message_id: int, user_id: str) -> int:
    """Remove a like. Returns the like count."""
    with get_db() as conn:
        conn.execute(
            'DELETE FROM message_likes WHERE message_id = ? AND user_id = ?',
            (message_id, user_id)
        )
        conn.commit()
    return count_likes(message_id)


def count_likes(message_id: int) -> int:
    with get_db() as conn:
        cursor = conn.execute(
            'SELECT COUNT(*) AS count FROM message_likes WHERE message_id = ?',
            (message_id,)
        )
        return cursor.fetchone()['count']


# --- Unread counters ---

def increment_unread(user_id: str, conversation_key: str) -> int:
    """Add one unread message for a viewer. Returns the new count."""
    with get_db() as conn:
        conn.execute('''
            INSERT INTO unread_counters (user_id, conversation, count)
            VALUES (?, ?, 1)
            ON CONFLICT (user_id, conversation) DO UPDATE SET count = count + 1
        ''', (user_id, conversation_key))
        conn.commit()
    return get_unread(user_id, conversation_key)


def mark_read(conversation_key: str, user_id: str):
    """Reset a viewer's counter to zero."""
    with get_db() as conn:
        conn.execute(
            'UPDATE unread_counters SET count = 0 WHERE user_id = ? AND conversation = ?',
            (user_id, conversation_key)
        )
        conn.commit()


def get_unread(user_id: str, conversation_key: str) -> int:
    with get_db() as conn:
        cursor = conn.execute(
            'SELECT count FROM unread_counters WHERE user_id = ? AND conversation = ?',
            (user_id, conversation_key)
        )
        row = cursor.fetchone()
        return row['count'] if row else 0


def get_unread_counts(user_id: str) -> Dict[str, int]:
    """All non-zero counters of a viewer, keyed by conversation."""
    with get_db() as conn:
        cursor = conn.execute(
            'SELECT conversation, count FROM unread_counters WHERE user_id = ? AND count > 0',
            (user_id,)
        )
        return {row['conversation']: row['count'] for row in cursor}


# --- Search ---

def search_messages(
    viewer_id: str,
    query: str,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Dict], int]:
    """Search message text across every conversation the viewer can read."""
    where_sql = r'''
        m.text LIKE ? ESCAPE '\' AND (
            m.room_id IN (
                SELECT r.id FROM rooms r
                WHERE r.is_private = 0
                   OR r.id IN (SELECT room_id FROM room_members WHERE user_id = ?)
            )
            OR m.sender_id = ? OR m.recipient_id = ?
        )
    '''
    pattern = query.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    params = [f"%{pattern}%", viewer_id, viewer_id, viewer_id]

    with get_db() as conn:
        count_cursor = conn.execute(
            f"SELECT COUNT(*) AS count FROM messages m WHERE {where_sql}",
            params
        )
        total = count_cursor.fetchone()['count']

        cursor = conn.execute(
            f'{_MESSAGE_SELECT} WHERE {where_sql} ORDER BY m.id DESC LIMIT ? OFFSET ?',
            [viewer_id, *params, limit, offset]
        )
        messages = [_message_from_row(row) for row in cursor]

    return messages, total
