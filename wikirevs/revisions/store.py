from __future__ import annotations

import dataclasses
import multiprocessing
import threading
from contextlib import contextmanager
from datetime import datetime

from wikirevs.content.model import Content, ContentModel
from wikirevs.errors import AlreadyDeleted, PageExists, StoreUnavailable
from wikirevs.revisions.model import LogEntry, PageRecord, RecentChange, Revision, SiteStats, utc_now
from wikirevs.title import Title

logger = multiprocessing.get_logger()


class _PageLock:
    """Writer lock of one title plus the number of threads holding or waiting for it"""

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class RevisionStore:
    """Append-only ledger of page revisions plus the latest revision pointer of every page

    Writers serialize on a per-title lock (see :meth:`lock_page`) and the store lock guards id
    allocation and table updates, so a revision is fully stored before the page pointer moves to it.
    Readers take no lock: revisions are immutable and published before the pointer, so a reader
    sees either the previous or the new latest revision, never a partial one.
    """

    def __init__(self):
        """Initialize an empty store"""
        self.available = True

        self._lock = threading.RLock()
        self._page_locks: dict[Title, _PageLock] = {}

        self._next_page_id = 1
        self._next_rev_id = 1

        self._pages: dict[int, PageRecord] = {}
        self._page_ids: dict[Title, int] = {}
        self._revisions: dict[int, Revision] = {}
        self._page_revisions: dict[int, list[int]] = {}
        self._sha1_index: dict[int, dict[tuple[str, int], int]] = {}
        self._links: dict[int, tuple[Title, ...]] = {}
        self._archive: dict[Title, list[Revision]] = {}

        self._recent_changes: list[RecentChange] = []
        self._logs: list[LogEntry] = []
        self._site_stats = SiteStats()

    def _check_available(self) -> None:
        if not self.available:
            raise StoreUnavailable('Revision store is unavailable')

    @contextmanager
    def lock_page(self, title: Title):
        """Serialize writers of a single page (pages are independent of each other)

        A title's lock is dropped once no thread holds or waits for it.
        """
        self._check_available()
        with self._lock:
            page_lock = self._page_locks.get(title)
            if page_lock is None:
                page_lock = self._page_locks[title] = _PageLock()
            page_lock.users += 1
        try:
            with page_lock.lock:
                yield
        finally:
            with self._lock:
                page_lock.users -= 1
                if page_lock.users == 0:
                    del self._page_locks[title]

    @property
    def locked_pages(self) -> int:
        """Number of titles whose lock is held or waited for"""
        with self._lock:
            return len(self._page_locks)

    def page_by_title(self, title: Title) -> PageRecord | None:
        """Snapshot of the page record, or None if no page with the title exists"""
        self._check_available()
        page_id = self._page_ids.get(title)
        if page_id is None:
            return None
        return self.page(page_id)

    def page(self, page_id: int) -> PageRecord | None:
        self._check_available()
        record = self._pages.get(page_id)
        return dataclasses.replace(record) if record is not None else None

    def create_page(self, title: Title, model: ContentModel) -> PageRecord:
        """Register a new page; it has no revisions (and doesn't exist) until the first append

        Raises:
            PageExists: if a page with the title is already registered
        """
        self._check_available()
        with self._lock:
            if title in self._page_ids:
                raise PageExists(f'Page {title} already exists', title)
            page_id = self._next_page_id
            self._next_page_id += 1

            record = PageRecord(page_id, title, model)
            self._pages[page_id] = record
            self._page_ids[title] = page_id
            self._page_revisions[page_id] = []
            self._sha1_index[page_id] = {}
        logger.debug(f'Registered page {title} with id {page_id}')
        return dataclasses.replace(record)

    def append(
        self,
        page_id: int,
        content: Content,
        author: str,
        comment: str = '',
        is_minor: bool = False,
        parent_id: int | None = None,
        is_bot: bool = False,
        timestamp: datetime | None = None,
    ) -> Revision:
        """Store a new revision and make it the latest revision of the page

        Args:
            page_id: id of the page
            content: content of the revision
            author: user name
            comment: edit summary
            is_minor: minor edit flag
            parent_id: revision the edit was based on; defaults to the current latest revision
            is_bot: bot edit flag
            timestamp: revision timestamp (imports); defaults to now

        Raises:
            StoreUnavailable: if the store can't be written to
            KeyError: if the page isn't registered
        """
        self._check_available()
        with self._lock:
            record = self._pages[page_id]
            if parent_id is None:
                parent_id = record.latest

            rev_id = self._next_rev_id
            self._next_rev_id += 1
            revision = Revision(
                id=rev_id,
                page_id=page_id,
                content=content,
                author=author,
                timestamp=timestamp or utc_now(),
                comment=comment or '',
                is_minor=is_minor,
                parent_id=parent_id,
                is_bot=is_bot,
            )

            # publish the revision before moving the pointer
            self._revisions[rev_id] = revision
            self._page_revisions[page_id].append(rev_id)
            self._sha1_index[page_id][(revision.sha1, revision.size)] = rev_id

            record.latest = rev_id
            record.model = content.model
            record.touched = revision.timestamp

        logger.debug(f'Stored revision {rev_id} of page {record.title} (parent {parent_id})')
        return revision

    def latest(self, page_id: int) -> Revision | None:
        """Current revision of the page, or None if it has no revisions"""
        self._check_available()
        record = self._pages.get(page_id)
        if record is None or record.latest is None:
            return None
        return self._revisions.get(record.latest)

    def get(self, rev_id: int) -> Revision | None:
        """Look up a revision by id (revisions of deleted pages are not returned)"""
        self._check_available()
        return self._revisions.get(rev_id)

    def history(self, page_id: int) -> list[Revision]:
        """All revisions of the page, oldest first (empty once the page is deleted)"""
        self._check_available()
        # a concurrent delete_page archives the revisions under the same lock
        with self._lock:
            return [self._revisions[rev_id] for rev_id in self._page_revisions.get(page_id, [])]

    def find_by_sha1(self, page_id: int, sha1: str, size: int) -> Revision | None:
        """Newest revision of the page with the given content hash and size"""
        self._check_available()
        rev_id = self._sha1_index.get(page_id, {}).get((sha1, size))
        return self._revisions.get(rev_id) if rev_id is not None else None

    def delete_page(self, page_id: int, user: str, reason: str) -> list[Revision]:
        """Remove the page and move its revisions to the archive

        Returns:
            the archived revisions, oldest first

        Raises:
            AlreadyDeleted: if the page doesn't exist
        """
        self._check_available()
        with self._lock:
            record = self._pages.pop(page_id, None)
            if record is None:
                raise AlreadyDeleted(f'Page {page_id} does not exist', None)
            del self._page_ids[record.title]

            revisions = [self._revisions.pop(rev_id) for rev_id in self._page_revisions.pop(page_id)]
            self._sha1_index.pop(page_id, None)
            self._links.pop(page_id, None)
            self._archive.setdefault(record.title, []).extend(revisions)

            self._logs.append(LogEntry('delete', record.title, page_id, user, reason))

        logger.info(f'Deleted page {record.title}, archived {len(revisions)} revisions')
        return revisions

    def archived(self, title: Title) -> list[Revision]:
        """Revisions of deleted pages with the given title, oldest first"""
        self._check_available()
        with self._lock:
            return list(self._archive.get(title, []))

    def links(self, page_id: int) -> tuple[Title, ...]:
        """Outgoing page links recorded for the latest revision"""
        self._check_available()
        return self._links.get(page_id, ())

    def set_links(self, page_id: int, links: list[Title]) -> None:
        self._check_available()
        with self._lock:
            if page_id in self._pages:
                self._links[page_id] = tuple(links)

    def add_recent_change(self, change: RecentChange) -> None:
        self._check_available()
        with self._lock:
            self._recent_changes.append(change)

    def recent_changes(self, limit: int | None = None) -> list[RecentChange]:
        """Recent changes, newest first"""
        self._check_available()
        with self._lock:
            changes = list(reversed(self._recent_changes))
        return changes[:limit] if limit is not None else changes

    def add_log_entry(self, entry: LogEntry) -> None:
        self._check_available()
        with self._lock:
            self._logs.append(entry)

    def logs(self, action: str | None = None) -> list[LogEntry]:
        """Log entries (oldest first), optionally only those of one action"""
        self._check_available()
        with self._lock:
            return [e for e in self._logs if action is None or e.action == action]

    def update_site_stats(self, edits: int = 0, pages: int = 0, good_articles: int = 0) -> None:
        self._check_available()
        with self._lock:
            self._site_stats.edits += edits
            self._site_stats.pages += pages
            self._site_stats.good_articles += good_articles

    @property
    def site_stats(self) -> SiteStats:
        with self._lock:
            return dataclasses.replace(self._site_stats)
