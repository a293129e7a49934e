import unittest
from datetime import datetime, timezone

from wikirevs.config import WikiConfig
from wikirevs.content.model import JavaScriptContent, WikitextContent
from wikirevs.edits.classifier import EditClassifier, format_signature_timestamp
from wikirevs.edits.model import EditFlags
from wikirevs.title import Title
from wikirevs.users import User

TIMESTAMP = datetime(2002, 12, 11, 9, 39, 56, tzinfo=timezone.utc)


class TestAutosummary(unittest.TestCase):
    def setUp(self):
        self.classifier = EditClassifier(WikiConfig.load())

    def test_rules(self):
        test_cases = [
            (None, 'Hello world!', EditFlags.NEW, "Created page with 'Hello world!'"),
            ('Hello', '', 0, 'Blanked the page'),
            ('Hello', '  \n ', 0, 'Blanked the page'),
            ('Hello there, world!', '#REDIRECT [[Foo]]', 0, 'Redirected page to [[Foo]]'),
            ('#REDIRECT [[Foo]]', '#REDIRECT [[Bar#Top]]', 0, 'Redirected page to [[Bar#Top]]'),
            ('#REDIRECT [[Foo]]', '#REDIRECT [[foo]]', 0, ''),
            ('x' * 200, 'Hello world!', 0, "Replaced page with 'Hello world!'"),
            ('x' * 100, 'Hello world!', 0, ''),
            ('foo', 'bar', 0, ''),
        ]
        for old, new, flags, expected in test_cases:
            with self.subTest(f'{old!r:.20} -> {new!r:.20}'):
                self.assertEqual(self.classifier.get_autosummary(old, new, flags), expected)

    def test_new_page_summary_wins(self):
        summary = self.classifier.get_autosummary(None, '#REDIRECT [[Foo]]', EditFlags.NEW)

        self.assertEqual(summary, "Created page with '#REDIRECT [[Foo]]'")

    def test_excerpt_is_truncated(self):
        summary = self.classifier.get_autosummary(None, 'word ' * 100, EditFlags.NEW)

        self.assertTrue(summary.endswith("...'"), summary)
        self.assertLessEqual(len(summary), len("Created page with ''") + 150)

    def test_replace_limit(self):
        classifier = EditClassifier(WikiConfig.load(autosummary_replace_max_length=10))

        self.assertEqual(classifier.get_autosummary('x' * 500, 'Hello world!'), '')

    def test_content_objects(self):
        summary = self.classifier.get_autosummary(WikitextContent('Hello'), WikitextContent(''))

        self.assertEqual(summary, 'Blanked the page')


class TestAutoDeleteReason(unittest.TestCase):
    def setUp(self):
        self.classifier = EditClassifier(WikiConfig.load())

    def test_empty_history(self):
        self.assertEqual(self.classifier.get_auto_delete_reason([]), (False, False))

    def test_only_contributor(self):
        reason, has_history = self.classifier.get_auto_delete_reason([('first edit', None)], 'Admin')

        self.assertEqual(
            reason, 'content was: "first edit" (and the only contributor was "[[Special:Contributions/Admin|Admin]]")'
        )
        self.assertFalse(has_history)

    def test_several_contributors(self):
        reason, has_history = self.classifier.get_auto_delete_reason(
            [('first edit', '127.0.2.22'), ('second\nedit', '127.0.3.33')]
        )

        self.assertEqual(reason, 'content was: "second edit"')
        self.assertTrue(has_history)

    def test_blanked(self):
        reason, _ = self.classifier.get_auto_delete_reason(
            [('first edit', '127.0.2.22'), ('second edit', '127.0.2.22'), ('', '127.0.3.33')]
        )

        self.assertEqual(reason, 'content before blanking was: "second edit"')

    def test_blank_only(self):
        reason, _ = self.classifier.get_auto_delete_reason([('', '127.0.2.22'), (' ', '127.0.3.33')])

        self.assertEqual(reason, 'content was: ""')

    def test_length_limit(self):
        classifier = EditClassifier(WikiConfig.load(delete_reason_max_length=40))

        reason, _ = classifier.get_auto_delete_reason([('word ' * 50, 'a'), ('word ' * 60, 'b')])

        self.assertEqual(len(reason), 40)
        self.assertTrue(reason.endswith('..."'))


class TestPreSaveTransform(unittest.TestCase):
    def setUp(self):
        self.classifier = EditClassifier(WikiConfig.load())
        self.anon = User('127.0.0.1')

    def test_signatures(self):
        signature = '[[Special:Contributions/127.0.0.1|127.0.0.1]]'
        test_cases = [
            ('hello this is ~~~', f'hello this is {signature}'),
            ('~~~~', f'{signature} 09:39, 11 December 2002 (UTC)'),
            ('~~~~~', '09:39, 11 December 2002 (UTC)'),
            ('~~', '~~'),
            ('text   \n\n', 'text'),
        ]
        for text, expected in test_cases:
            with self.subTest(text):
                self.assertEqual(self.classifier.pre_save_transform(text, self.anon, TIMESTAMP), expected)

    def test_verbatim_spans(self):
        test_cases = [
            "hello ''this'' is <nowiki>~~~</nowiki>",
            '<pre class="x">~~~</pre>',
            '<!-- ~~~ -->',
            '<NOWIKI>~~~</NOWIKI>',
        ]
        for text in test_cases:
            with self.subTest(text):
                self.assertEqual(self.classifier.pre_save_transform(text, self.anon, TIMESTAMP), text)

    def test_mixed_spans(self):
        text = '~~~ <nowiki>~~~</nowiki> ~~~ <!-- ~~~'

        transformed = self.classifier.pre_save_transform(text, User('Admin'), TIMESTAMP)

        self.assertEqual(transformed, '[[User:Admin|Admin]] <nowiki>~~~</nowiki> [[User:Admin|Admin]] <!-- ~~~')

    def test_signature_timestamp(self):
        self.assertEqual(
            format_signature_timestamp(datetime(2024, 4, 1, 7, 5, tzinfo=timezone.utc)), '07:05, 1 April 2024 (UTC)'
        )


class TestCountability(unittest.TestCase):
    def setUp(self):
        self.config = WikiConfig.load()
        self.classifier = EditClassifier(self.config)
        self.main = Title.new_from_text('Foo', self.config)

    def test_is_countable(self):
        test_cases = [
            ('any', 'Foo', True),
            ('comma', 'Foo', False),
            ('comma', 'Foo, bar', True),
            ('link', 'Foo', False),
            ('link', 'Foo [[bar]]', True),
            ('link', 'Foo [[Category:Bar]]', False),
            ('any', '#REDIRECT [[bar]]', False),
        ]
        for mode, text, expected in test_cases:
            with self.subTest(f'{mode} / {text}'):
                classifier = EditClassifier(self.config.replace(article_count_method=mode))
                self.assertEqual(classifier.is_countable(WikitextContent(text), self.main), expected)

    def test_missing_content(self):
        self.assertFalse(self.classifier.is_countable(None, self.main))

    def test_non_content_namespace(self):
        talk = Title.new_from_text('Talk:Foo', self.config)

        self.assertFalse(self.classifier.is_countable(WikitextContent('Foo [[bar]]'), talk))

    def test_redirect_to_invalid_title_is_countable(self):
        classifier = EditClassifier(self.config.replace(article_count_method='any'))

        self.assertTrue(classifier.is_countable(WikitextContent('#REDIRECT [[<invalid>]]'), self.main))

    def test_prepare_edit(self):
        info = self.classifier.prepare_edit(None, WikitextContent('#REDIRECT [[bar]]'), EditFlags.NEW)

        self.assertTrue(info.is_redirect)
        self.assertEqual([t.prefixed_text for t in info.links], ['Bar'])
        self.assertEqual(info.summary, "Created page with '#REDIRECT [[bar]]'")

        info = self.classifier.prepare_edit(WikitextContent('a'), JavaScriptContent('var a;'))
        self.assertFalse(info.is_redirect)
        self.assertEqual(info.links, [])


if __name__ == '__main__':
    unittest.main()
