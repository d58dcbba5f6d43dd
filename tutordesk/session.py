import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from pydantic import ValidationError

from .schemas import User, UserRole
from .storage import KeyValueStorage
from .utils import parse_timestamp

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "currentUser"
TOKEN_KEY = "authToken"
THEME_KEY = "theme"
TOUR_KEY = "tourCompleted"
WEEKLY_REPORT_KEY = "weeklyReport_{user_id}"

THEMES = ("light", "dark")
STAFF_ROLES = (UserRole.COACH, UserRole.SUPERADMIN)


class Session:
    """The signed-in user and their token, kept in session storage."""

    def __init__(self, storage: Optional[KeyValueStorage] = None):
        self.storage = storage or KeyValueStorage()
        # bumped on every identity change so derived views know to recompute
        self.revision = 0
        self._current_user = self._load()

    def _load(self) -> Optional[User]:
        raw = self.storage.get(CURRENT_USER_KEY)
        if not raw:
            return None
        try:
            return User.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable stored user: {e}")
            self.storage.remove(CURRENT_USER_KEY)
            return None

    @property
    def current_user(self) -> Optional[User]:
        return self._current_user

    @property
    def token(self) -> Optional[str]:
        return self.storage.get(TOKEN_KEY)

    @property
    def is_authenticated(self) -> bool:
        return self._current_user is not None and bool(self.token)

    @property
    def is_staff(self) -> bool:
        return self._current_user is not None and self._current_user.role in STAFF_ROLES

    def sign_in(self, user: User, token: str) -> None:
        self.storage.set(TOKEN_KEY, token)
        self.set_current_user(user)
        logger.info(f"Signed in as {user.email} ({user.role.value})")

    def set_current_user(self, user: User) -> None:
        self._current_user = user
        self.storage.set(CURRENT_USER_KEY, user.model_dump(by_alias=True, mode="json"))
        self.revision += 1

    def sign_out(self) -> None:
        self._current_user = None
        self.storage.remove(CURRENT_USER_KEY)
        self.storage.remove(TOKEN_KEY)
        self.revision += 1

    def rematch(self, users: Iterable[User]) -> Optional[User]:
        """Swap the stored record for the fresh one with the same id.

        A stored user missing from ``users`` is stale and ends the session.
        """
        if self._current_user is None:
            return None
        fresh = next((u for u in users if u.id == self._current_user.id), None)
        if fresh is None:
            logger.info(f"Stored user {self._current_user.id} no longer exists, clearing session")
            self.sign_out()
            return None
        self.set_current_user(fresh)
        return fresh


class Preferences:
    """Per-device settings kept in local storage."""

    def __init__(self, storage: Optional[KeyValueStorage] = None):
        self.storage = storage or KeyValueStorage()

    @property
    def theme(self) -> str:
        return self.storage.get(THEME_KEY, "light")

    @theme.setter
    def theme(self, value: str) -> None:
        if value not in THEMES:
            raise ValueError(f"Unknown theme {value!r}, expected one of {THEMES}")
        self.storage.set(THEME_KEY, value)

    @property
    def tour_completed(self) -> bool:
        return bool(self.storage.get(TOUR_KEY, False))

    def complete_tour(self) -> None:
        self.storage.set(TOUR_KEY, True)

    def should_show_weekly_report(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """True at most once per week per user; records the showing when it returns True.

        The week is measured from local midnight seven days before ``now``.
        """
        now = now or datetime.now().astimezone()
        if now.tzinfo is None:
            now = now.astimezone()
        key = WEEKLY_REPORT_KEY.format(user_id=user_id)
        one_week_ago = now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=7)

        last_shown = self.storage.get(key)
        if last_shown and parse_timestamp(last_shown) >= one_week_ago:
            return False
        self.storage.set(key, now.isoformat())
        return True
