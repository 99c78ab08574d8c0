"""
Read access to calendar content for the agent.

The agent never talks to storage directly: it receives a repository scoped to
one (user_id, calendar_id) pair. Every call checks access first and raises
``Forbidden`` when the caller is not a member of the calendar.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, TypeVar
import asyncio
import structlog

from hub_agent.domain.errors import Forbidden
from hub_agent.domain.models.content import BrandRule, MediaItem, Note, Post
from hub_agent.infrastructure.security.calendar_access import CalendarAccessPolicy

logger = structlog.get_logger(__name__)

T = TypeVar("T", BrandRule, Post, Note, MediaItem)


class CalendarRepository(ABC):
    """Read-only data access scoped to an authorized calendar"""

    def __init__(self, user_id: str, calendar_id: str):
        self.user_id = user_id
        self.calendar_id = calendar_id

    @abstractmethod
    async def get_brand_rules(self) -> List[BrandRule]:
        pass

    @abstractmethod
    async def get_posts(self) -> List[Post]:
        pass

    @abstractmethod
    async def get_post(self, post_id: str) -> Optional[Post]:
        pass

    @abstractmethod
    async def get_note(self, note_id: str) -> Optional[Note]:
        pass

    @abstractmethod
    async def get_media_by_calendar(self) -> List[MediaItem]:
        pass


class InMemoryCalendarStore:
    """Process-local content store shared by all repositories"""

    def __init__(self):
        self.brand_rules: Dict[str, BrandRule] = {}
        self.posts: Dict[str, Post] = {}
        self.notes: Dict[str, Note] = {}
        self.media: Dict[str, MediaItem] = {}
        self._lock = asyncio.Lock()

    async def save_brand_rule(self, rule: BrandRule) -> BrandRule:
        async with self._lock:
            self.brand_rules[rule.id] = rule
        return rule

    async def save_post(self, post: Post) -> Post:
        async with self._lock:
            self.posts[post.id] = post
        return post

    async def save_note(self, note: Note) -> Note:
        async with self._lock:
            self.notes[note.id] = note
        return note

    async def save_media(self, item: MediaItem) -> MediaItem:
        async with self._lock:
            self.media[item.id] = item
        return item

    async def list_for_calendar(self, table: Dict[str, T], calendar_id: str) -> List[T]:
        """Copies of every row belonging to a calendar"""

        async with self._lock:
            return [row.model_copy() for row in table.values() if row.calendar_id == calendar_id]

    async def get(self, table: Dict[str, T], row_id: str) -> Optional[T]:
        async with self._lock:
            row = table.get(row_id)
            return row.model_copy() if row else None


class InMemoryCalendarRepository(CalendarRepository):
    """Repository backed by an InMemoryCalendarStore"""

    def __init__(
        self,
        store: InMemoryCalendarStore,
        access: CalendarAccessPolicy,
        user_id: str,
        calendar_id: str
    ):
        super().__init__(user_id, calendar_id)
        self.store = store
        self.access = access

    def _authorize(self) -> None:
        self.access.ensure_access(self.user_id, self.calendar_id)

    def _check_scope(self, row: Optional[T], kind: str) -> Optional[T]:
        """Rows from another calendar are treated as forbidden"""

        if row is not None and row.calendar_id != self.calendar_id:
            raise Forbidden(
                f"Forbidden: {kind} does not belong to this calendar",
                {"id": row.id, "calendar_id": self.calendar_id}
            )
        return row

    async def get_brand_rules(self) -> List[BrandRule]:
        self._authorize()
        return await self.store.list_for_calendar(self.store.brand_rules, self.calendar_id)

    async def get_posts(self) -> List[Post]:
        self._authorize()
        posts = await self.store.list_for_calendar(self.store.posts, self.calendar_id)
        return sorted(posts, key=lambda p: p.date)

    async def get_post(self, post_id: str) -> Optional[Post]:
        self._authorize()
        return self._check_scope(await self.store.get(self.store.posts, post_id), "Post")

    async def get_note(self, note_id: str) -> Optional[Note]:
        self._authorize()
        return self._check_scope(await self.store.get(self.store.notes, note_id), "Note")

    async def get_media_by_calendar(self) -> List[MediaItem]:
        self._authorize()
        return await self.store.list_for_calendar(self.store.media, self.calendar_id)
