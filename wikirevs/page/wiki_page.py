from __future__ import annotations

import multiprocessing
from dataclasses import dataclass
from enum import Enum

from wikirevs.config import SecondaryUpdate
from wikirevs.content.model import (
    Content,
    ContentModel,
    default_model_for,
    get_content_class,
    make_content,
)
from wikirevs.edits.model import EditFlags, EditInfo, EditResult
from wikirevs.errors import (
    AlreadyDeleted,
    ModelMismatch,
    PageExists,
    PageMissing,
    PermissionDenied,
    RendererUnavailable,
    VirtualNamespace,
)
from wikirevs.page import rollback
from wikirevs.rendering import ParserOptions, ParserOutput
from wikirevs.revisions.history import effective_history
from wikirevs.revisions.model import PageRecord, RecentChange, Revision
from wikirevs.title import Title
from wikirevs.users import User

logger = multiprocessing.get_logger()


class TextAbsence(Enum):
    """Reason why a page has no text"""

    # the page doesn't exist
    NO_CONTENT = 'no-content'
    # the content model can't be shown as plain text
    NOT_TEXT = 'not-text'


@dataclass(frozen=True)
class PageText:
    """Text of a page, or the reason why there is none"""

    text: str | None = None
    absence: TextAbsence | None = None

    @property
    def present(self) -> bool:
        return self.absence is None


class WikiPage:
    """Handle of a single page, identified by its title

    The handle holds no page state of its own: the latest revision pointer, existence and
    content model are read from the revision store on every call, so any number of handles
    for the same title stay consistent with each other.
    """

    def __init__(self, title: Title, wiki):
        """Initialize the page handle

        Args:
            title: page title
            wiki: the :class:`wikirevs.wiki.Wiki` the page belongs to
        """
        self.title = title
        self.wiki = wiki

    @property
    def config(self):
        return self.wiki.config

    @property
    def store(self):
        return self.wiki.store

    def get_title(self) -> Title:
        return self.title

    def _record(self) -> PageRecord | None:
        return self.store.page_by_title(self.title)

    def get_id(self) -> int | None:
        """Page id, or None if the page doesn't exist"""
        record = self._record()
        return record.page_id if record is not None and record.latest is not None else None

    def exists(self) -> bool:
        """Check if the page has at least one revision"""
        record = self._record()
        return record is not None and record.latest is not None

    def get_latest(self) -> int | None:
        """Id of the latest revision"""
        record = self._record()
        return record.latest if record is not None else None

    def get_revision(self) -> Revision | None:
        """Latest revision, or None if the page doesn't exist"""
        record = self._record()
        if record is None or record.latest is None:
            return None
        return self.store.latest(record.page_id)

    def get_content(self) -> Content | None:
        """Content of the latest revision, or None if the page doesn't exist"""
        revision = self.get_revision()
        return revision.content if revision is not None else None

    def get_text(self) -> PageText:
        """Text of the latest revision"""
        content = self.get_content()
        if content is None:
            return PageText(absence=TextAbsence.NO_CONTENT)
        text = content.get_text()
        if text is None:
            return PageText(absence=TextAbsence.NOT_TEXT)
        return PageText(text=text)

    def get_content_model(self) -> ContentModel:
        """Model of the existing page, or the default model for the title"""
        record = self._record()
        if record is not None and record.latest is not None:
            return record.model
        return default_model_for(self.title, self.config)

    def get_content_handler(self) -> type[Content]:
        """Content class of the page's model"""
        return get_content_class(self.get_content_model())

    def get_history(self) -> list[Revision]:
        """All revisions, oldest first"""
        record = self._record()
        return self.store.history(record.page_id) if record is not None else []

    def get_effective_history(self) -> list[Revision]:
        """Revisions, oldest first, without those undone by a later revert"""
        return effective_history(self.get_history())

    def get_contributors(self) -> list[str]:
        """Distinct authors, most recent first"""
        contributors = []
        for revision in reversed(self.get_history()):
            if revision.author not in contributors:
                contributors.append(revision.author)
        return contributors

    def do_edit_content(
        self,
        content: Content,
        comment: str = '',
        flags: int = 0,
        is_minor: bool = False,
        user: User | None = None,
        base_rev_id: int | None = None,
    ) -> EditResult:
        """Save new content as the latest revision of the page

        Args:
            content: new content
            comment: edit summary; an automatic summary is generated if empty
            flags: :class:`EditFlags`
            is_minor: mark the edit as minor
            user: author; defaults to the session user
            base_rev_id: latest revision id the edit was based on (concurrent edits are logged, the last one wins)

        Returns:
            :class:`EditResult`

        Raises:
            PermissionDenied: if the user may not edit (or create) the page
            ModelMismatch: if the content model differs from the page's model without EditFlags.FORCE_MODEL
            PageExists: if EditFlags.NEW is set and the page exists
            PageMissing: if EditFlags.UPDATE is set and the page doesn't exist
            VirtualNamespace: if the page is in the Special or Media namespace
            StoreUnavailable: if the revision store can't be written to
        """
        return self._do_edit(content, comment, flags, is_minor, user, base_rev_id, skipped_updates=frozenset())

    def do_edit(
        self, text: str, comment: str = '', flags: int = 0, is_minor: bool = False, user: User | None = None
    ) -> EditResult:
        """Save new text, using the page's content model"""
        content = make_content(text, self.title, self.get_content_model(), self.config)
        return self.do_edit_content(content, comment, flags, is_minor, user)

    def do_quick_edit_content(
        self, content: Content, user: User | None = None, comment: str = '', is_minor: bool = False
    ) -> EditResult:
        """Save new content without the secondary updates listed in config.quick_edit_skips"""
        return self._do_edit(
            content, comment, 0, is_minor, user, None, skipped_updates=self.config.quick_edit_skips
        )

    def do_quick_edit(
        self, text: str, user: User | None = None, comment: str = '', is_minor: bool = False
    ) -> EditResult:
        content = make_content(text, self.title, self.get_content_model(), self.config)
        return self.do_quick_edit_content(content, user, comment, is_minor)

    def _do_edit(self, content, comment, flags, is_minor, user, base_rev_id, skipped_updates) -> EditResult:
        if self.title.is_virtual:
            raise VirtualNamespace(f'Pages in namespace {self.title.ns_text} can not be edited', self.title)
        user = user or self.wiki.session_user
        classifier = self.wiki.classifier

        with self.store.lock_page(self.title):
            record = self._record()
            exists = record is not None and record.latest is not None

            self._require(user, 'edit')
            if not exists:
                self._require(user, 'create')
            if flags & EditFlags.NEW and exists:
                raise PageExists(f'Page {self.title} already exists', self.title)
            if flags & EditFlags.UPDATE and not exists:
                raise PageMissing(f'Page {self.title} does not exist', self.title)
            if exists and content.model != record.model and not flags & EditFlags.FORCE_MODEL:
                raise ModelMismatch(
                    f'Can not save {content.model.value} content to {record.model.value} page {self.title}',
                    self.title,
                    record.model.value,
                    content.model.value,
                )

            old_revision = self.store.latest(record.page_id) if exists else None
            old_content = old_revision.content if old_revision is not None else None
            if old_content is not None and old_content.equals(content):
                logger.info(f'No changes in edit of {self.title} by {user.name}, no revision created')
                return EditResult(old_revision, is_noop=True, summary=comment)
            if base_rev_id is not None and old_revision is not None and base_rev_id != old_revision.id:
                logger.warning(
                    f'Edit of {self.title} by {user.name} is based on revision {base_rev_id}, '
                    f'but the latest revision is {old_revision.id}; saving anyway'
                )

            summary = comment or ''
            use_autosummary = self.config.use_autosummary or flags & EditFlags.AUTOSUMMARY
            if not summary and use_autosummary and SecondaryUpdate.AUTOSUMMARY not in skipped_updates:
                summary_flags = flags | EditFlags.NEW if not exists else flags
                summary = classifier.get_autosummary(old_content, content, summary_flags)

            is_bot = bool(flags & EditFlags.FORCE_BOT) and (
                self.wiki.authority.has_capability(user, 'bot')
                or self.wiki.authority.has_capability(user, 'markbotedits')
            )
            reverted = None
            was_countable = False
            if exists:
                reverted = self.store.find_by_sha1(record.page_id, content.sha1, content.get_size())
                was_countable = classifier.is_countable(old_content, self.title)

            if record is None:
                record = self.store.create_page(self.title, content.model)
            revision = self.store.append(
                record.page_id,
                content,
                user.name,
                summary,
                is_minor=is_minor or bool(flags & EditFlags.MINOR),
                parent_id=old_revision.id if old_revision is not None else None,
                is_bot=is_bot,
            )
            self._do_secondary_updates(revision, old_revision, not exists, was_countable, flags, skipped_updates)

        if exists:
            logger.info(f'Edited {self.title}: revision {revision.id} by {revision.author}')
        else:
            logger.info(f'Created {self.title}: revision {revision.id} by {revision.author}')
        return EditResult(
            revision,
            is_new=not exists,
            summary=summary,
            reverted_to=reverted.id if reverted is not None else None,
        )

    def _do_secondary_updates(self, revision, old_revision, is_new, was_countable, flags, skipped_updates) -> None:
        content = revision.content
        if SecondaryUpdate.LINKS not in skipped_updates:
            self.store.set_links(revision.page_id, content.get_links(self.config))
        if SecondaryUpdate.SITE_STATS not in skipped_updates:
            is_countable = self.wiki.classifier.is_countable(content, self.title)
            self.store.update_site_stats(
                edits=1, pages=int(is_new), good_articles=int(is_countable) - int(was_countable)
            )
        if SecondaryUpdate.RECENT_CHANGES not in skipped_updates and not flags & EditFlags.SUPPRESS_RC:
            self.store.add_recent_change(
                RecentChange(
                    rev_id=revision.id,
                    page_id=revision.page_id,
                    title=self.title,
                    author=revision.author,
                    comment=revision.comment,
                    timestamp=revision.timestamp,
                    is_new=is_new,
                    is_minor=revision.is_minor,
                    is_bot=revision.is_bot,
                    old_size=old_revision.size if old_revision is not None else 0,
                    new_size=revision.size,
                )
            )
        if skipped_updates:
            logger.debug(f'Skipped updates for revision {revision.id}: {sorted(u.value for u in skipped_updates)}')

    def do_delete_article(self, reason: str = '', user: User | None = None) -> bool:
        """Delete the page; its revisions are moved to the archive

        Args:
            reason: deletion reason; generated from the page history if empty
            user: deleting user; defaults to the session user

        Returns:
            True once the page is deleted

        Raises:
            AlreadyDeleted: if the page doesn't exist
            PermissionDenied: if the user may not delete pages
            VirtualNamespace: if the page is in the Special or Media namespace
        """
        if self.title.is_virtual:
            raise VirtualNamespace(f'Pages in namespace {self.title.ns_text} can not be deleted', self.title)
        user = user or self.wiki.session_user
        self._require(user, 'delete')

        with self.store.lock_page(self.title):
            record = self._record()
            if record is None or record.latest is None:
                raise AlreadyDeleted(f'Page {self.title} does not exist', self.title)

            if not reason:
                reason, _ = self.get_auto_delete_reason()
            was_countable = self.wiki.classifier.is_countable(self.get_content(), self.title)

            self.store.delete_page(record.page_id, user.name, reason or '')
            self.store.update_site_stats(pages=-1, good_articles=-int(was_countable))
        logger.info(f'{user.name} deleted {self.title}: {reason}')
        return True

    def is_redirect(self) -> bool:
        return self.get_redirect_target() is not None

    def get_redirect_target(self) -> Title | None:
        """Target of the page's redirect directive, or None if the page isn't a redirect"""
        content = self.get_content()
        if content is None:
            return None
        return content.get_redirect_target(self.config)

    def has_viewable_content(self) -> bool:
        """Check if the page exists, or is known without being stored (special pages, system messages)"""
        return self.exists() or self.is_always_known()

    def is_always_known(self) -> bool:
        known = self.config.always_known.get(self.title.namespace)
        if not known:
            return False
        name = self.title.text
        if self.title.is_special:
            # Special:Contributions/Foo is the known page Special:Contributions
            name = name.split('/', 1)[0]
        return name.lower() in known

    def is_countable(self, edit_info: EditInfo | None = None) -> bool:
        """Check if the page counts as an article (see config.article_count_method)

        Args:
            edit_info: prepared edit (see :meth:`prepare_content_for_edit`); its new content is used
                instead of the current content
        """
        if edit_info is not None:
            return self.wiki.classifier.is_countable(edit_info.new_content, self.title, bool(edit_info.links))
        return self.wiki.classifier.is_countable(self.get_content(), self.title)

    def prepare_content_for_edit(self, content: Content, flags: int = 0) -> EditInfo:
        """Compute derived edit data (links, redirect, summary) for saving the content

        The content is judged as it would be stored by :meth:`do_edit_content`; signatures are only
        expanded by an explicit :meth:`pre_save_transform`.
        """
        old_content = self.get_content()
        if old_content is None:
            flags |= EditFlags.NEW
        return self.wiki.classifier.prepare_edit(old_content, content, flags)

    def replace_section(self, section: str | int, text: str, section_title: str | None = None) -> str | None:
        """Page text with one section replaced (see :class:`wikirevs.content.sections.SectionEditor`)"""
        content = self.get_content() or make_content('', self.title, self.get_content_model(), self.config)
        replaced = self.wiki.section_editor.replace_section(content, section, text, section_title)
        return replaced.native_data if replaced is not None else None

    def replace_section_content(
        self, section: str | int, section_content: Content, section_title: str | None = None
    ) -> Content | None:
        """Page content with one section replaced

        Returns:
            the new content, or None if the page's model doesn't support sections

        Raises:
            ModelMismatch: if the section content's model differs from the page's model
        """
        model = self.get_content_model()
        if section_content.model != model:
            raise ModelMismatch(
                f'Can not replace a section of {self.title} with {section_content.model.value} content',
                self.title,
                model.value,
                section_content.model.value,
            )
        content = self.get_content() or make_content('', self.title, model, self.config)
        return self.wiki.section_editor.replace_section(content, section, section_content.native_data, section_title)

    def get_parser_output(self, options: ParserOptions | None = None) -> ParserOutput | None:
        """Render the latest revision through the wiki's renderer

        Returns:
            the rendered output, or None if the page doesn't exist

        Raises:
            RendererUnavailable: if the wiki has no renderer
        """
        if self.wiki.renderer is None:
            raise RendererUnavailable('No renderer configured', self.title)
        content = self.get_content()
        if content is None:
            return None
        text = self.wiki.renderer.render(content, self.title, options or ParserOptions())
        return ParserOutput(text, content.get_links(self.config))

    def get_autosummary(self, old: str | Content | None, new: str | Content | None, flags: int = 0) -> str:
        return self.wiki.classifier.get_autosummary(old, new, flags)

    def get_auto_delete_reason(self) -> tuple[str | bool, bool]:
        """Suggested deletion reason

        Returns:
            Tuple: the reason, or False if the page doesn't exist; whether the page has more than one revision
        """
        history = [(revision.content.get_text() or '', revision.author) for revision in self.get_history()]
        return self.wiki.classifier.get_auto_delete_reason(history, self.wiki.session_user.name)

    def pre_save_transform(self, text: str, user: User | None = None) -> str:
        return self.wiki.classifier.pre_save_transform(text, user or self.wiki.session_user)

    def do_rollback(self, from_user: str, summary: str, token: str, bot: bool, user: User) -> list:
        """Revert the latest consecutive edits of ``from_user``, see :func:`wikirevs.page.rollback.do_rollback`"""
        return rollback.do_rollback(self, from_user, summary, token, bot, user)

    def commit_rollback(self, from_user: str, summary: str, bot: bool, user: User) -> rollback.RollbackDetails:
        """Rollback without permission checks, see :func:`wikirevs.page.rollback.commit_rollback`"""
        return rollback.commit_rollback(self, from_user, summary, bot, user)

    def _require(self, user: User, action: str) -> None:
        if not self.wiki.authority.has_capability(user, action):
            logger.warning(f'{user.name} is not allowed to {action} {self.title}')
            raise PermissionDenied(f'User {user.name} is not allowed to {action} {self.title}', self.title, action)

    def __repr__(self):
        return f'WikiPage({self.title.prefixed_text!r})'
