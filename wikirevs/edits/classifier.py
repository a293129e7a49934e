from __future__ import annotations

import multiprocessing
import re
from datetime import datetime

from wikirevs.config import ArticleCountMethod, WikiConfig
from wikirevs.content.model import Content, WikitextContent, truncate
from wikirevs.edits.model import EditFlags, EditInfo
from wikirevs.revisions.model import utc_now
from wikirevs.title import Title
from wikirevs.users import User

logger = multiprocessing.get_logger()

# spans that pre-save transform leaves untouched; each opening pattern maps to its closing pattern
_VERBATIM_OPEN_RE = re.compile(r'<(nowiki|pre)(?:\s[^>]*)?>|<!--', re.IGNORECASE)
_VERBATIM_CLOSE = {
    'nowiki': re.compile(r'</nowiki\s*>', re.IGNORECASE),
    'pre': re.compile(r'</pre\s*>', re.IGNORECASE),
    '!--': re.compile(r'-->'),
}
# longest first: ~~~~~ is a timestamp, ~~~~ signature and timestamp, ~~~ signature
_SIGNATURE_RE = re.compile(r'~{5}|~{4}|~{3}')


def format_signature_timestamp(timestamp: datetime) -> str:
    """Timestamp used in signatures, e.g. '09:39, 11 December 2002 (UTC)'"""
    return f'{timestamp:%H:%M}, {timestamp.day} {timestamp:%B %Y} (UTC)'


class EditClassifier:
    """Derives edit metadata from the content before and after an edit

    * automatic edit summaries
    * automatic deletion reasons
    * countability of pages for article statistics
    * pre-save transform (signature expansion)
    """

    def __init__(self, config: WikiConfig):
        """Initialize the classifier

        Args:
            config: wiki configuration (count method, summary thresholds)
        """
        self.config = config

    def get_autosummary(self, old: str | Content | None, new: str | Content | None, flags: int = 0) -> str:
        """Human readable description of an edit

        Only the first matching rule applies:

        * new page: "Created page with '<start of the text>'"
        * the new text is blank: "Blanked the page"
        * the new text is a redirect to a different target: "Redirected page to [[Target]]"
        * most of the text was removed: "Replaced page with '<start of the text>'"

        Args:
            old: text before the edit (None for new pages)
            new: text after the edit
            flags: edit flags; :attr:`EditFlags.NEW` marks page creation

        Returns:
            the summary, or '' if no rule applies
        """
        old_content = self._as_content(old)
        new_content = self._as_content(new)
        old_text = old_content.native_data if old_content is not None else ''
        new_text = new_content.native_data if new_content is not None else ''
        excerpt_length = self.config.autosummary_excerpt_length

        if flags & EditFlags.NEW:
            excerpt = new_content.get_text_for_summary(excerpt_length) if new_content is not None else ''
            return f"Created page with '{excerpt}'"

        if not new_text.strip():
            return 'Blanked the page'

        new_target = new_content.get_redirect_target(self.config)
        if new_target is not None:
            old_target = old_content.get_redirect_target(self.config) if old_content is not None else None
            if old_target is None or old_target != new_target or old_target.fragment != new_target.fragment:
                target_text = new_target.prefixed_text
                if new_target.fragment:
                    target_text += f'#{new_target.fragment}'
                return f'Redirected page to [[{target_text}]]'

        if (
            len(old_text) > self.config.autosummary_replace_ratio * len(new_text)
            and len(new_text) < self.config.autosummary_replace_max_length
        ):
            return f"Replaced page with '{new_content.get_text_for_summary(excerpt_length)}'"

        return ''

    def get_auto_delete_reason(
        self, history: list[tuple[str, str | None]], session_user: str = '127.0.0.1'
    ) -> tuple[str | bool, bool]:
        """Suggested reason for deleting a page, based on its history

        Args:
            history: chronological list of (revision text, author) tuples;
                an empty author stands for the session user
            session_user: name of the current user

        Returns:
            Tuple: the reason (False for an empty history); whether the page has more than one revision
        """
        if not history:
            return False, False

        has_history = len(history) > 1
        authors = {author or session_user for _, author in history}
        only_author = authors.pop() if len(authors) == 1 else None

        text = history[-1][0] or ''
        if not text.strip():
            earlier = [t for t, _ in history[:-1] if t and t.strip()]
            if earlier:
                reason = 'content before blanking was: "$1"'
                text = earlier[-1]
            else:
                reason = 'content was: "$1"'
        elif only_author is not None:
            reason = f'content was: "$1" (and the only contributor was "[[Special:Contributions/{only_author}|{only_author}]]")'
        else:
            reason = 'content was: "$1"'

        max_length = self.config.delete_reason_max_length - (len(reason) - 2)
        excerpt = truncate(re.sub(r'[\r\n]+', ' ', text).strip(), max_length)
        return reason.replace('$1', excerpt), has_history

    def pre_save_transform(self, text: str, user: User, timestamp: datetime | None = None) -> str:
        """Expand signatures (~~~, ~~~~, ~~~~~) and strip trailing whitespace

        Text inside <nowiki>, <pre> and comments is left untouched.
        """
        timestamp = timestamp or utc_now()
        signature = user.signature()
        signature_timestamp = format_signature_timestamp(timestamp)
        replacements = {
            '~~~': signature,
            '~~~~': f'{signature} {signature_timestamp}',
            '~~~~~': signature_timestamp,
        }

        transformed = []
        for segment, verbatim in self._split_verbatim(text):
            if verbatim:
                transformed.append(segment)
            else:
                transformed.append(_SIGNATURE_RE.sub(lambda m: replacements[m.group(0)], segment))
        return ''.join(transformed).rstrip()

    def is_countable(self, content: Content | None, title: Title, has_links: bool | None = None) -> bool:
        """Check if a page counts as an article

        Only non-redirect pages in content namespaces count; the configured method decides the rest:
        'any' counts every such page, 'comma' requires a comma, 'link' an internal link.

        Args:
            content: current (or prepared) page content
            title: page title
            has_links: whether the content links to other pages; computed from the content if None
        """
        if not self.config.is_content_namespace(title.namespace):
            return False
        if content is None or content.get_redirect_target(self.config) is not None:
            return False

        method = self.config.article_count_method
        if method == ArticleCountMethod.LINK and has_links is None:
            has_links = bool(content.get_links(self.config))
        return content.is_countable(has_links, method)

    def prepare_edit(self, old_content: Content | None, new_content: Content, flags: int = 0) -> EditInfo:
        """Compute data derived from an edit once, so that it can be reused"""
        links = new_content.get_links(self.config)
        return EditInfo(
            old_content=old_content,
            new_content=new_content,
            links=links,
            is_redirect=new_content.get_redirect_target(self.config) is not None,
            summary=self.get_autosummary(old_content, new_content, flags),
        )

    @staticmethod
    def _as_content(text: str | Content | None) -> Content | None:
        if text is None or isinstance(text, Content):
            return text
        return WikitextContent(text)

    @staticmethod
    def _split_verbatim(text: str):
        """Single scan over the text, yielding (segment, is_verbatim) tuples"""
        pos = 0
        while True:
            start = _VERBATIM_OPEN_RE.search(text, pos)
            if start is None:
                yield text[pos:], False
                return
            yield text[pos : start.start()], False

            tag = (start.group(1) or '!--').lower()
            end = _VERBATIM_CLOSE[tag].search(text, start.end())
            if end is None:
                # unclosed span runs to the end of the text
                yield text[start.start() :], True
                return
            yield text[start.start() : end.end()], True
            pos = end.end()
