from enum import Enum
from typing import FrozenSet, Optional, Set, Union
from hpd.utils.logger import logger


class ChecklistItem(str, Enum):
    CLIENT_REQUEST = "client-request"
    CLIENT_REDIRECT = "client-redirect"
    SERVER_STATUS = "server-status"
    SERVER_METHODS = "server-methods"
    KEEP_ALIVE = "keep-alive"


ItemId = Union[ChecklistItem, str]


def _item_id(item: ItemId) -> str:
    return item.value if isinstance(item, ChecklistItem) else str(item)


class VerificationTracker:
    """
    Set of checklist items that a probe has empirically observed.
    Items can only be added.
    """

    def __init__(self):
        self._verified: Set[str] = set()

    def mark_verified(self, item: ItemId) -> bool:
        """Returns True if the item was newly marked."""
        item_id = _item_id(item)
        if item_id in self._verified:
            return False
        self._verified.add(item_id)
        logger.debug(f"Checklist item verified: {item_id}")
        return True

    def is_verified(self, item: ItemId) -> bool:
        return _item_id(item) in self._verified

    @property
    def verified(self) -> FrozenSet[str]:
        return frozenset(self._verified)

    def __len__(self):
        return len(self._verified)


class ProbeSession:
    """
    State shared by the scenarios of one run: the checklist tracker and
    whatever credentials a login scenario obtained.
    """

    def __init__(self, tracker: Optional[VerificationTracker] = None):
        self.tracker = tracker if tracker is not None else VerificationTracker()
        self.username: Optional[str] = None
        self.token: Optional[str] = None

    @property
    def logged_in(self) -> bool:
        return self.token is not None

    def login(self, username: str, token: str):
        self.username = username
        self.token = token

    def logout(self):
        # The tracker survives a logout; only a new session resets it.
        self.username = None
        self.token = None
