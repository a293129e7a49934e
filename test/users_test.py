import unittest

from wikirevs.config import WikiConfig
from wikirevs.users import TOKEN_SUFFIX, GroupPermissions, User, is_ip_address


class TestUser(unittest.TestCase):
    def test_is_anon(self):
        self.assertTrue(User().is_anon)
        self.assertTrue(User('127.0.1.11').is_anon)
        self.assertTrue(User('2001:db8::1').is_anon)
        self.assertFalse(User('Admin').is_anon)
        self.assertFalse(is_ip_address('300.1.1.1'))

    def test_effective_groups(self):
        self.assertEqual(User('127.0.0.1').effective_groups(), {'*'})
        self.assertEqual(User('Admin').effective_groups(), {'*', 'user'})

        admin = User('Admin')
        admin.add_group('sysop')
        self.assertEqual(admin.effective_groups(), {'*', 'user', 'sysop'})

    def test_edit_token(self):
        user = User('Admin')
        salt = ['Foo', '127.0.2.13']

        token = user.edit_token(salt, 'secret')

        self.assertTrue(token.endswith(TOKEN_SUFFIX))
        self.assertTrue(user.match_edit_token(token, salt, 'secret'))
        self.assertFalse(user.match_edit_token(token, ['Foo', '127.0.2.14'], 'secret'))
        self.assertFalse(user.match_edit_token(token, salt, 'other secret'))
        self.assertFalse(User('Other').match_edit_token(token, salt, 'secret'))
        self.assertFalse(user.match_edit_token(None, salt, 'secret'))
        self.assertFalse(user.match_edit_token(token[:-2], salt, 'secret'))

    def test_signature(self):
        self.assertEqual(User('127.0.0.1').signature(), '[[Special:Contributions/127.0.0.1|127.0.0.1]]')
        self.assertEqual(User('Admin').signature(), '[[User:Admin|Admin]]')


class TestGroupPermissions(unittest.TestCase):
    def test_has_capability(self):
        authority = GroupPermissions(WikiConfig.load())
        anon = User('127.0.0.1')
        admin = User('Admin', {'sysop'})
        bot = User('Botty', {'bot'})

        test_cases = [
            (anon, 'edit', True),
            (anon, 'create', True),
            (anon, 'delete', False),
            (anon, 'rollback', False),
            (admin, 'edit', True),
            (admin, 'delete', True),
            (admin, 'rollback', True),
            (admin, 'markbotedits', True),
            (bot, 'bot', True),
            (bot, 'delete', False),
        ]
        for user, action, expected in test_cases:
            with self.subTest(f'{user.name} / {action}'):
                self.assertEqual(authority.has_capability(user, action), expected)


if __name__ == '__main__':
    unittest.main()
