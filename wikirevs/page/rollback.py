from __future__ import annotations

import multiprocessing
from dataclasses import dataclass

from wikirevs.edits.model import EditFlags, EditResult
from wikirevs.errors import NotLastAuthor, OnlyAuthor, PageMissing, RollbackError, RollbackPermissionDenied
from wikirevs.revisions.model import Revision
from wikirevs.users import User

logger = multiprocessing.get_logger()

DEFAULT_ROLLBACK_SUMMARY = 'Reverted edits by $1 to last revision by $2'


@dataclass
class RollbackDetails:
    """Outcome of a rollback

    Attributes:
        summary: summary of the reverting edit
        current: latest revision before the rollback
        target: revision whose content was restored
        result: result of the reverting edit
    """

    summary: str
    current: Revision
    target: Revision
    result: EditResult


def rollback_token_salt(page, from_user: str) -> list[str]:
    return [page.get_title().prefixed_text, from_user]


def do_rollback(page, from_user: str, summary: str, token: str, bot: bool, user: User) -> list[RollbackError]:
    """Revert the latest consecutive edits of ``from_user`` after checking permissions

    Args:
        page: :class:`wikirevs.page.wiki_page.WikiPage` to roll back
        from_user: author whose edits are reverted
        summary: custom edit summary ('' for the default one)
        token: edit token of ``user`` salted with the page title and ``from_user``
        bot: mark the reverting edit as a bot edit (if ``user`` may)
        user: user performing the rollback

    Returns:
        list of errors; empty if the rollback succeeded
    """
    title = page.get_title()
    authority = page.wiki.authority

    errors = []
    for action in ('edit', 'rollback'):
        if not authority.has_capability(user, action):
            errors.append(RollbackPermissionDenied(f'User {user.name} is not allowed to {action} {title}', title, action))
    if not user.match_edit_token(token, rollback_token_salt(page, from_user), page.config.edit_token_secret):
        errors.append(RollbackPermissionDenied(f'Invalid rollback token for {title}', title))
    if errors:
        logger.warning(f'Rollback of {title} by {user.name} refused: {"; ".join(str(e) for e in errors)}')
        return errors

    try:
        commit_rollback(page, from_user, summary, bot, user)
    except RollbackError as e:
        logger.warning(f'Rollback of {title} failed: {e}')
        return [e]
    except PageMissing as e:
        logger.warning(f'Rollback of {title} failed: {e}')
        return [RollbackError(str(e), title)]
    return []


def commit_rollback(page, from_user: str, summary: str, bot: bool, user: User) -> RollbackDetails:
    """Restore the latest revision not authored by ``from_user``, without permission checks

    Raises:
        PageMissing: if the page doesn't exist
        NotLastAuthor: if the latest revision isn't by ``from_user``
        OnlyAuthor: if every revision is by ``from_user``
    """
    title = page.get_title()
    store = page.store

    with store.lock_page(title):
        history = page.get_history()
        if not history:
            raise PageMissing(f'Page {title} does not exist', title)

        current = history[-1]
        if current.author != from_user:
            raise NotLastAuthor(
                f'The latest revision of {title} is by {current.author}, not by {from_user}',
                title,
                from_user,
                current.author,
            )

        # history is ordered by revision id, so walking it backwards follows the parent chain
        target = next((r for r in reversed(history) if r.author != from_user), None)
        if target is None:
            raise OnlyAuthor(f'{from_user} is the only author of {title}', title, from_user)

        summary = (summary or DEFAULT_ROLLBACK_SUMMARY).replace('$1', from_user).replace('$2', target.author)

        flags = EditFlags.UPDATE | EditFlags.MINOR
        if bot and page.wiki.authority.has_capability(user, 'markbotedits'):
            flags |= EditFlags.FORCE_BOT
        if target.content.model != current.content.model:
            flags |= EditFlags.FORCE_MODEL

        result = page.do_edit_content(
            target.content, summary, flags, is_minor=True, user=user, base_rev_id=current.id
        )

    logger.info(f'{user.name} rolled back {title} from revision {current.id} to {target.id} ({target.author})')
    return RollbackDetails(summary, current, target, result)
