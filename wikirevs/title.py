from __future__ import annotations

import multiprocessing
import re
from dataclasses import dataclass, field
from enum import IntEnum

from wikirevs.config import WikiConfig

logger = multiprocessing.get_logger()


class Namespace(IntEnum):
    """Default namespace ids"""

    MEDIA = -2
    SPECIAL = -1
    MAIN = 0
    TALK = 1
    USER = 2
    USER_TALK = 3
    PROJECT = 4
    PROJECT_TALK = 5
    FILE = 6
    FILE_TALK = 7
    MEDIAWIKI = 8
    MEDIAWIKI_TALK = 9
    TEMPLATE = 10
    TEMPLATE_TALK = 11
    HELP = 12
    HELP_TALK = 13
    CATEGORY = 14
    CATEGORY_TALK = 15


# namespaces without stored pages
VIRTUAL_NAMESPACES = frozenset({Namespace.MEDIA, Namespace.SPECIAL})

MAX_TITLE_LENGTH = 255

_illegal_chars_re = re.compile(r'[\[\]{}|<>\x00-\x1f\x7f]')
_whitespace_re = re.compile(r'[\s_]+')


@dataclass(frozen=True)
class Title:
    """Normalized, namespace qualified page title

    Titles are compared by namespace id and normalized text; the namespace prefix
    and the fragment (``#Section``) don't take part in comparisons.

    Attributes:
        namespace: namespace id
        text: title text without the namespace prefix, e.g. 'Hello world'
        ns_text: namespace prefix, e.g. 'Talk' ('' for the main namespace)
        fragment: section anchor, without the leading #
    """

    namespace: int
    text: str
    ns_text: str = field(default='', compare=False)
    fragment: str = field(default='', compare=False)

    @staticmethod
    def new_from_text(text: str | None, config: WikiConfig, default_namespace: int = Namespace.MAIN) -> Title | None:
        """Create a title from user supplied text

        Args:
            text: e.g. 'talk:hello_world#History'
            config: wiki configuration (namespace names)
            default_namespace: namespace used when the text has no namespace prefix

        Returns:
            the normalized title, or None if the text isn't a valid page title
        """
        if text is None:
            return None

        text = _whitespace_re.sub(' ', text).strip()
        fragment = ''
        if '#' in text:
            text, fragment = text.split('#', 1)
            text = text.strip()
            fragment = fragment.strip()

        namespace = default_namespace
        if text.startswith(':'):
            # leading colon forces the main namespace, unless another prefix follows
            namespace = Namespace.MAIN
            text = text[1:].strip()
        if ':' in text:
            prefix, rest = text.split(':', 1)
            resolved = config.namespace_by_name(prefix)
            if resolved is not None:
                namespace = resolved
                text = rest.strip()

        if not text:
            logger.debug(f'Empty title text (fragment: "{fragment}")')
            return None
        if _illegal_chars_re.search(text):
            logger.debug(f'Illegal characters in title "{text}"')
            return None
        if text in ('.', '..') or text.startswith('./') or text.startswith('../'):
            return None
        if len(text) > MAX_TITLE_LENGTH:
            return None

        text = text[0].upper() + text[1:]
        return Title(namespace, text, config.namespace_name(namespace), fragment)

    @property
    def prefixed_text(self) -> str:
        """Title text with the namespace prefix, e.g. 'Talk:Hello world'"""
        if self.ns_text:
            return f'{self.ns_text}:{self.text}'
        return self.text

    @property
    def db_key(self) -> str:
        """Prefixed title with spaces replaced by underscores"""
        return self.prefixed_text.replace(' ', '_')

    @property
    def is_virtual(self) -> bool:
        """Pages in virtual namespaces (Special, Media) are never stored"""
        return self.namespace in VIRTUAL_NAMESPACES

    @property
    def is_special(self) -> bool:
        return self.namespace == Namespace.SPECIAL

    @property
    def is_talk_page(self) -> bool:
        return self.namespace > 0 and self.namespace % 2 == 1

    def has_extension(self, *extensions: str) -> bool:
        """Check if the title text ends with any of the extensions, e.g. '.js'"""
        lowered = self.text.lower()
        return any(lowered.endswith(ext) for ext in extensions)

    def with_fragment(self, fragment: str) -> Title:
        return Title(self.namespace, self.text, self.ns_text, fragment)

    def __str__(self):
        return self.prefixed_text
