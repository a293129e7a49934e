import unittest

from wikirevs.config import WikiConfig
from wikirevs.content.model import make_content
from wikirevs.errors import AlreadyDeleted
from wikirevs.page.wiki_page import WikiPage
from wikirevs.title import Title
from wikirevs.users import User
from wikirevs.wiki import Wiki


class WikiTestCase(unittest.TestCase):
    """Base class for tests working on pages of a fresh wiki

    Pages created through :meth:`new_page` are deleted when the test ends.
    """

    def setUp(self):
        self.wiki = self.new_wiki()
        self.pages_to_delete: list[WikiPage] = []

    def tearDown(self):
        for page in self.pages_to_delete:
            try:
                if page.exists():
                    page.do_delete_article('testing done.')
            except AlreadyDeleted:
                pass

    @staticmethod
    def new_wiki(config: WikiConfig = None, **kwargs) -> Wiki:
        # the session user may delete pages, so that tearDown can clean up
        session_user = kwargs.pop('session_user', User('127.0.0.1', {'sysop'}))
        return Wiki(config or WikiConfig.load(), session_user=session_user, **kwargs)

    def new_page(self, title: str | Title, wiki: Wiki = None) -> WikiPage:
        page = (wiki or self.wiki).new_page(title)
        self.pages_to_delete.append(page)
        return page

    def create_page(self, page: str | Title | WikiPage, text: str, model: str = None, wiki: Wiki = None) -> WikiPage:
        if not isinstance(page, WikiPage):
            page = self.new_page(page, wiki)
        content = make_content(text, page.get_title(), model, page.config)
        page.do_edit_content(content, 'testing')
        return page
