from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from wikirevs.content.model import Content, ContentModel
from wikirevs.title import Title


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(timestamp: datetime) -> str:
    """ISO 8601 timestamp as used in dumps, e.g. '2002-12-11T09:39:56Z'"""
    return timestamp.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def parse_timestamp(timestamp: str) -> datetime:
    return datetime.fromisoformat(timestamp.replace('Z', '+00:00'))


@dataclass(frozen=True)
class Revision:
    """Immutable content snapshot of a page

    Attributes:
        id: revision id, assigned by the store; increases with every saved revision
        page_id: id of the page the revision belongs to
        content: page content at this revision
        author: name of the user who saved the revision
        timestamp: time the revision was saved
        comment: edit summary
        is_minor: the edit was marked as minor
        parent_id: id of the revision this one was based on (None for the first revision)
        is_bot: the edit was made by (or marked as) a bot
    """

    id: int
    page_id: int
    content: Content = field(repr=False)
    author: str
    timestamp: datetime
    comment: str = ''
    is_minor: bool = False
    parent_id: int | None = None
    is_bot: bool = False

    @property
    def sha1(self) -> str:
        return self.content.sha1

    @property
    def size(self) -> int:
        return self.content.get_size()

    @property
    def model(self) -> ContentModel:
        return self.content.model

    def get_content(self) -> Content:
        return self.content


@dataclass
class PageRecord:
    """Store side state of a page

    Attributes:
        page_id: page id; a deleted and re-created page gets a new id
        title: page title
        model: content model of the page
        latest: id of the current revision (None until the first revision is stored)
        touched: time of the last change
    """

    page_id: int
    title: Title
    model: ContentModel
    latest: int | None = None
    touched: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class RecentChange:
    """Entry of the recent changes feed"""

    rev_id: int
    page_id: int
    title: Title
    author: str
    comment: str
    timestamp: datetime
    is_new: bool = False
    is_minor: bool = False
    is_bot: bool = False
    old_size: int = 0
    new_size: int = 0


@dataclass(frozen=True)
class LogEntry:
    """Entry of the page actions log (deletions, imports)"""

    action: str
    title: Title
    page_id: int
    user: str
    comment: str
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class SiteStats:
    """Site-wide counters"""

    edits: int = 0
    pages: int = 0
    good_articles: int = 0
