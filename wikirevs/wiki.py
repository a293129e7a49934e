from __future__ import annotations

import multiprocessing

from wikirevs.config import WikiConfig
from wikirevs.content.model import Content, ContentModel, make_content
from wikirevs.content.sections import SectionEditor
from wikirevs.edits.classifier import EditClassifier
from wikirevs.errors import InvalidTitle
from wikirevs.page.wiki_page import WikiPage
from wikirevs.rendering import Renderer
from wikirevs.revisions.store import RevisionStore
from wikirevs.title import Title
from wikirevs.users import Authority, GroupPermissions, User

logger = multiprocessing.get_logger()


class Wiki:
    """Entry point holding the collaborators shared by all page handles

    Page handles keep no state of their own, so any number of handles created by
    :meth:`new_page` for the same title observe the same pages.
    """

    def __init__(
        self,
        config: WikiConfig | None = None,
        store: RevisionStore | None = None,
        authority: Authority | None = None,
        renderer: Renderer | None = None,
        session_user: User | None = None,
    ):
        """Initialize the wiki

        Args:
            config: wiki configuration; the packaged default configuration when omitted
            store: revision store; a new empty store when omitted
            authority: permission checks; group based permissions from the configuration when omitted
            renderer: renders content for :meth:`WikiPage.get_parser_output` (optional)
            session_user: user that edits when no user is given; anonymous 127.0.0.1 when omitted
        """
        self.config = config or WikiConfig.load()
        self.store = store or RevisionStore()
        self.authority = authority or GroupPermissions(self.config)
        self.renderer = renderer
        self.session_user = session_user or User()

        self.classifier = EditClassifier(self.config)
        self.section_editor = SectionEditor()

    def title(self, text: str | Title) -> Title:
        """Normalized title

        Raises:
            InvalidTitle: if the text isn't a valid page title
        """
        if isinstance(text, Title):
            return text
        title = Title.new_from_text(text, self.config)
        if title is None:
            raise InvalidTitle(f'Invalid title: "{text}"', text)
        return title

    def new_page(self, title: str | Title) -> WikiPage:
        """Page handle for the title (the page doesn't need to exist)"""
        return WikiPage(self.title(title), self)

    def title_exists(self, title: str | Title) -> bool:
        return self.new_page(title).exists()

    def make_content(self, text: str, title: str | Title | None = None, model: str | ContentModel | None = None) -> Content:
        """Content for the page with the given title, in the title's default model unless one is given"""
        if title is not None:
            title = self.title(title)
        return make_content(text, title, model, self.config)
