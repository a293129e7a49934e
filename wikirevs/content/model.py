from __future__ import annotations

import hashlib
import multiprocessing
import re
from enum import Enum

import mwparserfromhell as mwp

from wikirevs.config import ArticleCountMethod, WikiConfig
from wikirevs.errors import InvalidModel
from wikirevs.title import Namespace, Title

logger = multiprocessing.get_logger()

_redirect_re = re.compile(r'^\s*#REDIRECT\s*:?\s*\[\[([^\]|\n]*)(?:\|[^\]\n]*)?]]', re.IGNORECASE)

# namespaces whose wikilinks are not page links (embedded files, category membership)
_NON_PAGE_LINK_NAMESPACES = frozenset({Namespace.FILE, Namespace.CATEGORY, Namespace.MEDIA})


class ContentModel(Enum):
    """Content type of a page"""

    WIKITEXT = 'wikitext'
    JAVASCRIPT = 'javascript'
    CSS = 'css'
    TEXT = 'text'

    @staticmethod
    def from_name(name: str | ContentModel) -> ContentModel:
        """Resolve a model name

        Raises:
            InvalidModel: if the name isn't a known content model
        """
        if isinstance(name, ContentModel):
            return name
        try:
            return ContentModel(str(name).strip().lower())
        except ValueError:
            raise InvalidModel(f'Unknown content model: {name}', str(name)) from None


def sha1_base36(text: str) -> str:
    """SHA-1 of the utf-8 encoded text, in base 36 padded to 31 characters"""
    value = int(hashlib.sha1(text.encode('utf-8')).hexdigest(), 16)
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append('0123456789abcdefghijklmnopqrstuvwxyz'[remainder])
    return ''.join(reversed(digits)).rjust(31, '0')


class Content:
    """Immutable page content: a text payload tagged with its content model"""

    model: ContentModel = ContentModel.TEXT
    # content can be split into heading delimited sections
    supports_sections = False
    # the payload can be shown as plain text
    is_text = True

    def __init__(self, text: str):
        """Initializes the content instance

        Args:
            text: raw payload
        """
        if not isinstance(text, str):
            raise TypeError(f'Content payload must be a string, got {type(text).__name__}')
        self._text = text
        self._sha1 = None

    @property
    def native_data(self) -> str:
        """Raw payload"""
        return self._text

    @property
    def sha1(self) -> str:
        if self._sha1 is None:
            self._sha1 = sha1_base36(self._text)
        return self._sha1

    def get_text(self) -> str | None:
        """Payload as plain text, or None if the model can't be shown as text"""
        return self._text if self.is_text else None

    def get_size(self) -> int:
        """Payload size in bytes"""
        return len(self._text.encode('utf-8'))

    def get_text_for_summary(self, max_length: int = 250) -> str:
        """Single line excerpt of the payload, shortened with '...' to at most ``max_length`` characters"""
        text = re.sub(r'[\r\n]+', ' ', self._text).strip()
        return truncate(text, max_length)

    def is_redirect(self) -> bool:
        return False

    def get_redirect_target(self, config: WikiConfig) -> Title | None:
        return None

    def get_links(self, config: WikiConfig) -> list[Title]:
        """Titles of the pages this content links to"""
        return []

    def is_countable(self, has_links: bool | None, method: ArticleCountMethod) -> bool:
        """Check if the content counts as an article under the given policy

        Namespace and redirect checks are done by the caller.

        Args:
            has_links: whether the content contains internal links (needed by the 'link' policy)
            method: countability policy
        """
        if method == ArticleCountMethod.ANY:
            return True
        if method == ArticleCountMethod.COMMA:
            return ',' in self._text
        if method == ArticleCountMethod.LINK:
            return bool(has_links)
        return False

    def equals(self, other: Content | None) -> bool:
        """Structural equality: same model and same payload"""
        if other is None or not isinstance(other, Content):
            return False
        return self.model == other.model and self._text == other._text

    def __eq__(self, other):
        if not isinstance(other, Content):
            return NotImplemented
        return self.equals(other)

    def __hash__(self):
        return hash((self.model, self._text))

    def __repr__(self):
        return f'{type(self).__name__}({self._text[:40]!r}{"..." if len(self._text) > 40 else ""})'


class TextContent(Content):
    """Plain text"""

    model = ContentModel.TEXT


class JavaScriptContent(Content):
    """User or site script"""

    model = ContentModel.JAVASCRIPT


class CssContent(Content):
    """User or site style sheet"""

    model = ContentModel.CSS


class WikitextContent(Content):
    """Wiki markup. The only model that supports sections, redirects and links"""

    model = ContentModel.WIKITEXT
    supports_sections = True

    def is_redirect(self) -> bool:
        return _redirect_re.match(self._text) is not None

    def get_redirect_target(self, config: WikiConfig) -> Title | None:
        """Parse a leading '#REDIRECT [[Target]]' directive

        Returns:
            the normalized target title, or None if the text isn't a redirect or the target is invalid
        """
        match = _redirect_re.match(self._text)
        if match is None:
            return None
        target = Title.new_from_text(match.group(1), config)
        if target is None:
            logger.debug(f'Invalid redirect target: {match.group(1)}')
        return target

    def get_links(self, config: WikiConfig) -> list[Title]:
        """Internal page links, in order of first appearance

        File and category links are not page links, unless escaped with a leading colon.
        Special pages are never page links.
        """
        links = []
        seen = set()
        for wl in mwp.parse(self._text).filter_wikilinks():
            raw_title = str(wl.title).strip()
            escaped = raw_title.startswith(':')
            title = Title.new_from_text(raw_title, config)
            if title is None or title.is_special:
                continue
            if not escaped and title.namespace in _NON_PAGE_LINK_NAMESPACES:
                continue
            if title not in seen:
                seen.add(title)
                links.append(title)
        return links


_CONTENT_CLASSES: dict[ContentModel, type[Content]] = {
    ContentModel.WIKITEXT: WikitextContent,
    ContentModel.JAVASCRIPT: JavaScriptContent,
    ContentModel.CSS: CssContent,
    ContentModel.TEXT: TextContent,
}


def get_content_class(model: str | ContentModel) -> type[Content]:
    """Content class handling the model

    Raises:
        InvalidModel: if the model is unknown
    """
    return _CONTENT_CLASSES[ContentModel.from_name(model)]


def default_model_for(title: Title | None, config: WikiConfig | None = None) -> ContentModel:
    """Content model of a new page with the given title

    Titles ending in .js or .css in the script namespaces (MediaWiki, User) hold scripts and styles,
    everything else is wikitext.
    """
    if title is None:
        return ContentModel.WIKITEXT
    script_namespaces = config.script_namespaces if config is not None else WikiConfig.script_namespaces
    if title.namespace in script_namespaces:
        if title.has_extension('.js'):
            return ContentModel.JAVASCRIPT
        if title.has_extension('.css'):
            return ContentModel.CSS
    return ContentModel.WIKITEXT


def make_content(
    raw_text: str, title: Title | None = None, model: str | ContentModel | None = None, config: WikiConfig = None
) -> Content:
    """Create content for a page

    Args:
        raw_text: payload
        title: page the content is meant for; used to pick the model when none is given
        model: explicit content model name
        config: wiki configuration (script namespaces)

    Raises:
        InvalidModel: if the explicit model is unknown
    """
    if model is None:
        model = default_model_for(title, config)
    return get_content_class(model)(raw_text)


def truncate(text: str, max_length: int, ellipsis: str = '...') -> str:
    """Shorten the text to at most ``max_length`` characters, marking the cut with an ellipsis"""
    if max_length <= 0:
        return ''
    if len(text) <= max_length:
        return text
    if max_length <= len(ellipsis):
        return ellipsis[:max_length]
    return text[: max_length - len(ellipsis)].rstrip() + ellipsis
