from __future__ import annotations

import logging
import multiprocessing

from wikirevs.revisions.model import Revision

logger = multiprocessing.get_logger()


class RevisionNode:
    """Single revision chained with the revision it was based on"""

    def __init__(self, revision: Revision, parent: RevisionNode | None):
        """Initialize the revision node"""
        self.revision = revision
        self.parent = parent

    @property
    def id(self) -> int:
        return self.revision.id


class RevisionsChainCreator:
    """Builds the effective history of a page, i.e. the history with reverted revisions skipped

    A revision whose text is identical to an earlier revision reverts the page to that revision,
    so every revision in between drops out of the chain.
    """

    def __init__(self):
        """Initialize the revision chain creator"""
        self.sha1_to_rev: dict[tuple[str, int], RevisionNode] = {}
        self.all_revisions: list[int] = []
        self.reverts_count = 0
        self.curr_revision: RevisionNode | None = None

    def on_revision_processed(self, revision: Revision) -> int | None:
        """Process next revision (oldest to newest)

        Returns:
            id of the earlier revision this one reverts to, or None if it isn't a revert
        """
        self.all_revisions.append(revision.id)

        # use both text sha1 hash and size to decrease chances of getting a collision on just sha1
        key = (revision.sha1, revision.size)
        if key not in self.sha1_to_rev:
            self.curr_revision = RevisionNode(revision, self.curr_revision)
            self.sha1_to_rev[key] = self.curr_revision
            return None

        revert_parent = self.sha1_to_rev[key]
        if self.curr_revision is revert_parent:
            # null revision (same text as the previous one), nothing reverted
            return None
        self.curr_revision = revert_parent
        self.reverts_count += 1

        if logger.isEnabledFor(logging.DEBUG):
            revert_count = 1
            while self.all_revisions[-revert_count - 1] != revert_parent.id:
                revert_count += 1
            logger.debug(f'Revision {revision.id} reverts {revert_count - 1} edits back to {revert_parent.id}')
        return revert_parent.id

    def chain(self) -> list[Revision]:
        """Revisions of the effective history, oldest first"""
        revisions = []
        node = self.curr_revision
        while node is not None:
            revisions.append(node.revision)
            node = node.parent
        revisions.reverse()
        return revisions


def effective_history(history: list[Revision]) -> list[Revision]:
    """Page history (oldest first) without the revisions that were later reverted"""
    creator = RevisionsChainCreator()
    for revision in history:
        creator.on_revision_processed(revision)
    chain = creator.chain()
    logger.debug(f'Reverts: {creator.reverts_count} / {len(history)}, chain length {len(chain)}')
    return chain
