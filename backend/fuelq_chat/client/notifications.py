"""Desktop notifications and sounds for incoming chat activity.

The desktop popup is gated by a permission that starts undecided. While it
is undecided the first notification asks for it and is skipped; after that
popups are shown only if permission was granted. The sound does not need
permission.
"""
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Message"


class Permission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


def _log_popup(title: str, body: str, icon: Optional[str] = None):
    logger.info("[notify] %s: %s", title, body)


def _no_sound():
    pass


class Notifier:
    """Shows desktop popups and plays the notification sound.

    Args:
        permission: Initial permission state.
        request_permission: Asks the user; returns the new Permission.
            May be a coroutine function.
        show: Displays a popup as ``show(title, body, icon)``.
        sound: Plays the notification sound.
    """

    def __init__(
        self,
        permission: Permission = Permission.DEFAULT,
        request_permission: Optional[Callable[[], Any]] = None,
        show: Optional[Callable[..., Any]] = None,
        sound: Optional[Callable[[], Any]] = None,
    ):
        self.permission = permission
        self._request_permission = request_permission
        self._show = show or _log_popup
        self._sound = sound or _no_sound

    async def notify(self, body: str, title: str = DEFAULT_TITLE, icon: Optional[str] = None) -> bool:
        """Show a popup if allowed. Returns whether one was shown."""
        if self.permission == Permission.DEFAULT:
            await self.request_permission()
            return False

        if self.permission != Permission.GRANTED:
            return False

        self._show(title, body, icon)
        return True

    async def request_permission(self) -> Permission:
        if self._request_permission is None:
            return self.permission

        result = self._request_permission()
        if inspect.isawaitable(result):
            result = await result
        self.permission = Permission(result)
        logger.debug("Notification permission is now %s", self.permission.value)
        return self.permission

    def play_sound(self):
        self._sound()
