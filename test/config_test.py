import os
import tempfile
import unittest

from wikirevs.config import DEFAULT_CONFIG_FILE, ArticleCountMethod, SecondaryUpdate, WikiConfig


class TestWikiConfig(unittest.TestCase):
    def test_load_default(self):
        config = WikiConfig.load()

        self.assertEqual(config.article_count_method, ArticleCountMethod.LINK)
        self.assertEqual(config.content_namespaces, frozenset({0}))
        self.assertEqual(config.namespace_name(1), 'Talk')
        self.assertEqual(config.namespace_name(0), '')
        self.assertEqual(config.quick_edit_skips, frozenset(SecondaryUpdate))
        self.assertIn('rollback', config.group_permissions['sysop'])
        self.assertIn('userlogin', config.always_known[-1])
        self.assertTrue(os.path.exists(DEFAULT_CONFIG_FILE))

    def test_overrides(self):
        config = WikiConfig.load(article_count_method='comma', content_namespaces=[0, 4])

        self.assertEqual(config.article_count_method, ArticleCountMethod.COMMA)
        self.assertTrue(config.is_content_namespace(4))
        self.assertFalse(config.is_content_namespace(1))

    def test_invalid_count_method(self):
        with self.assertRaises(ValueError):
            WikiConfig.load(article_count_method='words')

    def test_unknown_keys(self):
        with self.assertLogs('multiprocessing', level='WARNING') as cm:
            config = WikiConfig.load(no_such_option=True)

        self.assertIn('no_such_option', cm.output[0])
        self.assertEqual(config.article_count_method, ArticleCountMethod.LINK)

    def test_load_file(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = os.path.join(tmp_dir, 'wiki.yml')
            with open(path, 'w', encoding='utf-8') as f:
                f.write('article_count_method: any\nnamespaces:\n  0: ""\n  1: Discussion\nuse_autosummary: false\n')

            config = WikiConfig.load(path)

        self.assertEqual(config.article_count_method, ArticleCountMethod.ANY)
        self.assertEqual(config.namespace_by_name('discussion'), 1)
        self.assertFalse(config.use_autosummary)
        # keys missing from the file keep their defaults
        self.assertEqual(config.delete_reason_max_length, 255)

    def test_replace(self):
        config = WikiConfig.load()

        changed = config.replace(article_count_method='any', use_autosummary=False)

        self.assertEqual(changed.article_count_method, ArticleCountMethod.ANY)
        self.assertFalse(changed.use_autosummary)
        self.assertEqual(config.article_count_method, ArticleCountMethod.LINK)

    def test_namespace_by_name(self):
        config = WikiConfig.load()

        self.assertEqual(config.namespace_by_name('user_talk'), 3)
        self.assertEqual(config.namespace_by_name('IMAGE'), 6)
        self.assertEqual(config.namespace_by_name('WP'), 4)
        self.assertIsNone(config.namespace_by_name(''))
        self.assertIsNone(config.namespace_by_name('Nonsense'))


if __name__ == '__main__':
    unittest.main()
