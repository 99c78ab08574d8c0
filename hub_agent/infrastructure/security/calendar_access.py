"""
Calendar access checks.

Membership data is owned by the host product; this policy only answers
whether a user may read or write a calendar's content.
"""

from typing import Dict, Iterable, Optional, Set, Tuple
import structlog

from hub_agent.domain.errors import Forbidden

logger = structlog.get_logger(__name__)


class CalendarAccessPolicy:
    """In-process membership table of (user_id, calendar_id) pairs"""

    def __init__(self, memberships: Optional[Iterable[Tuple[str, str]]] = None):
        self._members: Dict[str, Set[str]] = {}
        for user_id, calendar_id in memberships or []:
            self.grant(user_id, calendar_id)

    def grant(self, user_id: str, calendar_id: str) -> None:
        """Give a user access to a calendar"""
        self._members.setdefault(calendar_id, set()).add(user_id)

    def revoke(self, user_id: str, calendar_id: str) -> None:
        """Remove a user's access to a calendar"""
        self._members.get(calendar_id, set()).discard(user_id)

    def can_access(self, user_id: str, calendar_id: str) -> bool:
        return user_id in self._members.get(calendar_id, set())

    def ensure_access(self, user_id: str, calendar_id: str) -> None:
        """Raise Forbidden unless the user can access the calendar"""

        if not self.can_access(user_id, calendar_id):
            logger.warning("Calendar access denied", user_id=user_id, calendar_id=calendar_id)
            raise Forbidden(
                "Forbidden: User does not have access to this calendar",
                {"user_id": user_id, "calendar_id": calendar_id}
            )
