from __future__ import annotations

import enum
from dataclasses import dataclass, field

from wikirevs.content.model import Content
from wikirevs.revisions.model import Revision
from wikirevs.title import Title


class EditFlags(enum.IntFlag):
    """Flags of a page edit"""

    NONE = 0
    # the page must not exist yet
    NEW = 1
    # the page must exist
    UPDATE = 2
    MINOR = 4
    # don't add the edit to recent changes
    SUPPRESS_RC = 8
    # mark the edit as a bot edit (if the user is allowed to)
    FORCE_BOT = 16
    # generate a summary when none was given, even with config.use_autosummary off
    AUTOSUMMARY = 64
    # allow replacing the content model of an existing page
    FORCE_MODEL = 128


@dataclass
class EditInfo:
    """Data derived from a prepared edit, reusable for countability and summary computation

    Attributes:
        old_content: content of the latest revision before the edit (None for new pages)
        new_content: content being saved
        links: titles of the pages the new content links to
        is_redirect: the new content is a redirect to a valid title
        summary: automatic summary of the edit ('' if none applies)
    """

    old_content: Content | None
    new_content: Content
    links: list[Title] = field(default_factory=list)
    is_redirect: bool = False
    summary: str = ''


@dataclass
class EditResult:
    """Outcome of a successful edit

    Attributes:
        revision: the new revision (for no-op edits, the unchanged latest revision)
        is_new: the edit created the page
        is_noop: the content was identical to the latest revision, so nothing was stored
        summary: the edit summary that was stored (after automatic summary generation)
        reverted_to: id of an earlier revision whose content the edit restored
    """

    revision: Revision | None
    is_new: bool = False
    is_noop: bool = False
    summary: str = ''
    reverted_to: int | None = None
