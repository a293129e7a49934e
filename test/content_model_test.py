import unittest

from wikirevs.config import ArticleCountMethod, WikiConfig
from wikirevs.content.model import (
    ContentModel,
    CssContent,
    JavaScriptContent,
    TextContent,
    WikitextContent,
    default_model_for,
    get_content_class,
    make_content,
    sha1_base36,
    truncate,
)
from wikirevs.errors import InvalidModel
from wikirevs.title import Title


class TestContentModel(unittest.TestCase):
    config = WikiConfig.load()

    def test_from_name(self):
        self.assertEqual(ContentModel.from_name('wikitext'), ContentModel.WIKITEXT)
        self.assertEqual(ContentModel.from_name(' JavaScript '), ContentModel.JAVASCRIPT)
        self.assertEqual(ContentModel.from_name(ContentModel.CSS), ContentModel.CSS)

        with self.assertRaises(InvalidModel) as cm:
            ContentModel.from_name('flow-board')
        self.assertEqual(cm.exception.model, 'flow-board')

    def test_get_content_class(self):
        self.assertIs(get_content_class('wikitext'), WikitextContent)
        self.assertIs(get_content_class(ContentModel.JAVASCRIPT), JavaScriptContent)
        self.assertIs(get_content_class('css'), CssContent)
        self.assertIs(get_content_class('text'), TextContent)

    def test_default_model_for(self):
        test_cases = [
            (None, ContentModel.WIKITEXT),
            ('Foo.js', ContentModel.WIKITEXT),
            ('MediaWiki:Common.js', ContentModel.JAVASCRIPT),
            ('MediaWiki:Common.css', ContentModel.CSS),
            ('User:Foo/common.js', ContentModel.JAVASCRIPT),
            ('Template:Foo.css', ContentModel.WIKITEXT),
        ]
        for text, model in test_cases:
            with self.subTest(text):
                title = Title.new_from_text(text, self.config) if text else None
                self.assertEqual(default_model_for(title, self.config), model)

    def test_make_content(self):
        title = Title.new_from_text('MediaWiki:Common.js', self.config)

        self.assertIsInstance(make_content('var a;', title, config=self.config), JavaScriptContent)
        self.assertIsInstance(make_content('var a;', title, 'text', self.config), TextContent)
        self.assertIsInstance(make_content('Foo'), WikitextContent)
        with self.assertRaises(InvalidModel):
            make_content('Foo', model='unknown')

    def test_equality(self):
        self.assertTrue(WikitextContent('Foo').equals(WikitextContent('Foo')))
        self.assertEqual(WikitextContent('Foo'), WikitextContent('Foo'))
        self.assertFalse(WikitextContent('Foo').equals(TextContent('Foo')))
        self.assertFalse(WikitextContent('Foo').equals(WikitextContent('Bar')))
        self.assertFalse(WikitextContent('Foo').equals(None))
        self.assertEqual(len({WikitextContent('Foo'), WikitextContent('Foo')}), 1)

    def test_sha1_and_size(self):
        content = WikitextContent('Zażółć')

        self.assertEqual(content.get_size(), 10)
        self.assertEqual(len(content.sha1), 31)
        self.assertEqual(content.sha1, sha1_base36('Zażółć'))
        self.assertNotEqual(content.sha1, WikitextContent('Zazolc').sha1)
        # sha1 of '' in base 36
        self.assertEqual(sha1_base36(''), 'phoiac9h4m842xq45sp7s6u21eteeq1')

    def test_get_text_for_summary(self):
        content = WikitextContent('first line\nsecond line\r\nthird line')

        self.assertEqual(content.get_text_for_summary(), 'first line second line third line')
        self.assertEqual(content.get_text_for_summary(14), 'first line...')

    def test_redirect(self):
        test_cases = [
            ('#REDIRECT [[Foo]]', 'Foo'),
            ('#redirect [[foo bar]]', 'Foo bar'),
            ('  #REDIRECT:[[Talk:Foo|the talk page]] trailing text', 'Talk:Foo'),
            ('#REDIRECT [[Foo#History]]', 'Foo'),
            ('Text\n#REDIRECT [[Foo]]', None),
            ('#REDIRECT Foo', None),
            ('#REDIRECT [[Foo<bar>]]', None),
        ]
        for text, target in test_cases:
            with self.subTest(text):
                content = WikitextContent(text)
                redirect_target = content.get_redirect_target(self.config)
                self.assertEqual(redirect_target.prefixed_text if redirect_target else None, target)

    def test_redirect_fragment(self):
        target = WikitextContent('#REDIRECT [[Foo#History]]').get_redirect_target(self.config)

        self.assertEqual(target.fragment, 'History')

    def test_script_content_is_never_a_redirect(self):
        content = JavaScriptContent('#REDIRECT [[Foo]]')

        self.assertFalse(content.is_redirect())
        self.assertIsNone(content.get_redirect_target(self.config))
        self.assertFalse(content.supports_sections)

    def test_get_links(self):
        content = WikitextContent(
            'See [[foo]], [[Foo|again]], [[Talk:Bar#Section]], [[File:Pic.png|thumb]], '
            '[[Category:Things]], [[:File:Pic.png]], [[Special:Recentchanges]], [[:Special:Log]] '
            'and [[{{invalid}}]]'
        )

        links = content.get_links(self.config)
        self.assertEqual([t.prefixed_text for t in links], ['Foo', 'Talk:Bar', 'File:Pic.png'])

    def test_is_countable(self):
        test_cases = [
            ('', ArticleCountMethod.ANY, None, True),
            ('Foo', ArticleCountMethod.COMMA, None, False),
            ('Foo, bar', ArticleCountMethod.COMMA, None, True),
            ('Foo', ArticleCountMethod.LINK, False, False),
            ('Foo [[bar]]', ArticleCountMethod.LINK, True, True),
        ]
        for text, method, has_links, expected in test_cases:
            with self.subTest(f'{method.value} / {text}'):
                self.assertEqual(WikitextContent(text).is_countable(has_links, method), expected)

    def test_truncate(self):
        self.assertEqual(truncate('Foo bar', 10), 'Foo bar')
        self.assertEqual(truncate('Foo bar baz', 8), 'Foo b...')
        self.assertEqual(truncate('Foo bar baz', 2), '..')
        self.assertEqual(truncate('Foo', 0), '')

    def test_payload_must_be_text(self):
        with self.assertRaises(TypeError):
            WikitextContent(None)


if __name__ == '__main__':
    unittest.main()
