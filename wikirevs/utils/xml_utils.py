from __future__ import annotations

import multiprocessing
import xml.sax
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from xml.sax.saxutils import XMLGenerator

from wikirevs.content.model import Content, make_content
from wikirevs.errors import InvalidModel, PermissionDenied, VirtualNamespace
from wikirevs.revisions.model import LogEntry, format_timestamp, parse_timestamp, utc_now
from wikirevs.title import Title
from wikirevs.users import User, is_ip_address

logger = multiprocessing.get_logger()


class WIKI_XML:
    """Constants used in MediaWiki XML export files"""

    NS = 'http://www.mediawiki.org/xml/export-0.10/'
    VERSION = '0.10'

    ROOT = 'mediawiki'
    PAGE = 'page'
    REVISION = 'revision'

    ID = 'id'
    TITLE = 'title'
    PAGE_NS = 'ns'

    REV_PARENT_ID = 'parentid'
    REV_TIMESTAMP = 'timestamp'
    REV_MINOR = 'minor'
    REV_COMMENT = 'comment'
    REV_MODEL = 'model'
    REV_FORMAT = 'format'
    REV_SHA1 = 'sha1'
    REV_TEXT = 'text'

    REV_CONTRIBUTOR = 'contributor'
    REV_CONTRIBUTOR_USERNAME = 'username'
    REV_CONTRIBUTOR_IP = 'ip'


# serialization format of each content model
_MODEL_FORMATS = {
    'wikitext': 'text/x-wiki',
    'javascript': 'text/javascript',
    'css': 'text/css',
    'text': 'text/plain',
}


@dataclass
class DumpPage:
    """Page element of a dump"""

    title: str = ''
    ns: str = ''
    id: str = ''


@dataclass
class DumpRevision:
    """Revision element of a dump"""

    id: str = ''
    parent_id: str = ''
    timestamp: str = ''
    is_minor: bool = False
    contributor: str = ''
    comment: str = ''
    model: str = ''
    sha1: str = ''
    text_size: int = -1
    text: list[str] = field(default_factory=list, repr=False)

    def get_text(self) -> str:
        return ''.join(self.text)


class PageHandler(xml.sax.ContentHandler):
    """XML handler for <page> element and it's content (except for <revision>)"""

    def __init__(self):
        self.page = DumpPage()
        self._current_handler: Callable[[str], None] | None = None

    def startElement(self, name, attrs):
        if name == WIKI_XML.TITLE:
            self._current_handler = self._title
        elif name == WIKI_XML.PAGE_NS:
            self._current_handler = self._ns
        elif name == WIKI_XML.ID:
            self._current_handler = self._id

    def endElement(self, name):
        if name in (WIKI_XML.TITLE, WIKI_XML.PAGE_NS, WIKI_XML.ID):
            self._current_handler = None

    def characters(self, content):
        if self._current_handler is not None:
            self._current_handler(content)

    def _title(self, content: str):
        self.page.title += content

    def _ns(self, content: str):
        self.page.ns += content

    def _id(self, content: str):
        self.page.id += content


class RevisionHandler(xml.sax.ContentHandler):
    """XML handler for <revision> element and it's content"""

    # elements whose end only stops collecting characters
    END_ELEMENTS = {
        WIKI_XML.ID,
        WIKI_XML.REV_PARENT_ID,
        WIKI_XML.REV_TIMESTAMP,
        WIKI_XML.REV_COMMENT,
        WIKI_XML.REV_MODEL,
        WIKI_XML.REV_SHA1,
        WIKI_XML.REV_TEXT,
    }

    def __init__(self):
        self.revision = DumpRevision()
        self._current_handler: Callable[[str], None] | None = None
        self._in_contributor = False

    def startElement(self, name, attrs):
        if self._in_contributor:
            # contributor is either a user (username and id) or an ip
            if name == WIKI_XML.REV_CONTRIBUTOR_USERNAME or name == WIKI_XML.REV_CONTRIBUTOR_IP:
                self._current_handler = self._contributor
            return

        if name == WIKI_XML.ID:
            self._current_handler = self._id
        elif name == WIKI_XML.REV_PARENT_ID:
            self._current_handler = self._parent_id
        elif name == WIKI_XML.REV_TIMESTAMP:
            self._current_handler = self._timestamp
        elif name == WIKI_XML.REV_COMMENT:
            self._current_handler = self._comment
        elif name == WIKI_XML.REV_MODEL:
            self._current_handler = self._model
        elif name == WIKI_XML.REV_SHA1:
            self._current_handler = self._sha1
        elif name == WIKI_XML.REV_TEXT:
            self.revision.text_size = self._parse_size(attrs.get('bytes', ''))
            self._current_handler = self._text
        elif name == WIKI_XML.REV_MINOR:
            self.revision.is_minor = True
        elif name == WIKI_XML.REV_CONTRIBUTOR:
            self._in_contributor = True

    def endElement(self, name):
        if self._in_contributor:
            if name == WIKI_XML.REV_CONTRIBUTOR:
                self._in_contributor = False
            elif name == WIKI_XML.REV_CONTRIBUTOR_USERNAME or name == WIKI_XML.REV_CONTRIBUTOR_IP:
                self._current_handler = None
        elif name in RevisionHandler.END_ELEMENTS:
            self._current_handler = None

    def characters(self, content):
        if self._current_handler is not None:
            self._current_handler(content)

    def _id(self, content: str):
        self.revision.id += content

    def _parent_id(self, content: str):
        self.revision.parent_id += content

    def _timestamp(self, content: str):
        self.revision.timestamp += content

    def _comment(self, content: str):
        self.revision.comment += content

    def _model(self, content: str):
        self.revision.model += content

    def _sha1(self, content: str):
        self.revision.sha1 += content

    def _text(self, content: str):
        self.revision.text.append(content)

    def _contributor(self, content: str):
        self.revision.contributor += content

    @staticmethod
    def _parse_size(s):
        try:
            return int(s)
        except ValueError:
            return -1


class PageHistoryHandler(xml.sax.ContentHandler):
    """XML handler for a single <page> element with all its revisions"""

    class _HandlerState(Enum):
        NONE = 1
        PAGE = 2
        REVISION = 3

    def __init__(self, revision_consumer: Callable[[DumpPage, DumpRevision], None]):
        self._state = PageHistoryHandler._HandlerState.NONE
        self._revision_consumer = revision_consumer
        self._page_handler = PageHandler()
        self._revision_handler = None

    def startElement(self, name, attrs):
        match self._state:
            case PageHistoryHandler._HandlerState.NONE:
                if name == WIKI_XML.PAGE:
                    self._state = PageHistoryHandler._HandlerState.PAGE
                else:
                    logger.warning(f'Unexpected element: {name}')
            case PageHistoryHandler._HandlerState.PAGE:
                if name == WIKI_XML.REVISION:
                    # revisions are ordered from oldest to newest
                    self._state = PageHistoryHandler._HandlerState.REVISION
                    self._revision_handler = RevisionHandler()
                else:
                    # other page data (e.g. id or title)
                    self._page_handler.startElement(name, attrs)
            case PageHistoryHandler._HandlerState.REVISION:
                self._revision_handler.startElement(name, attrs)

    def endElement(self, name):
        match self._state:
            case PageHistoryHandler._HandlerState.NONE:
                logger.warning(f'Unexpected end element: {name}')
            case PageHistoryHandler._HandlerState.PAGE:
                if name == WIKI_XML.PAGE:
                    logger.debug(f'Finished parsing xml page {self._page_handler.page.title}')
                    self._state = PageHistoryHandler._HandlerState.NONE
                else:
                    self._page_handler.endElement(name)
            case PageHistoryHandler._HandlerState.REVISION:
                if name == WIKI_XML.REVISION:
                    self._revision_consumer(self._page_handler.page, self._revision_handler.revision)
                    self._state = PageHistoryHandler._HandlerState.PAGE
                    self._revision_handler = None
                else:
                    self._revision_handler.endElement(name)

    def characters(self, content):
        match self._state:
            case PageHistoryHandler._HandlerState.NONE:
                pass
            case PageHistoryHandler._HandlerState.PAGE:
                self._page_handler.characters(content)
            case PageHistoryHandler._HandlerState.REVISION:
                self._revision_handler.characters(content)


class PageHistoryConsumerInterface:
    """Receives the pages and revisions of a dump in document order"""

    def on_page_started(self) -> None:
        """Start new page processing"""
        pass

    def on_page_processed(self) -> None:
        """Finalize page processing"""
        pass

    def on_revision_processed(self, page: DumpPage, revision: DumpRevision) -> None:
        """Process a single revision"""
        pass


class MetaHistoryXmlHandler(xml.sax.ContentHandler):
    """XML content handler for export files with any number of pages (<siteinfo> is skipped)"""

    class _HandlerState(Enum):
        NONE = 1
        PAGE = 2

    def __init__(self, page_history_consumer: PageHistoryConsumerInterface):
        self._state = MetaHistoryXmlHandler._HandlerState.NONE
        self._page_history_consumer = page_history_consumer
        self._page_history_handler = None

    def startElement(self, name, attrs):
        match self._state:
            case MetaHistoryXmlHandler._HandlerState.NONE:
                if name == WIKI_XML.PAGE:
                    logger.debug('Starting page processing')
                    self._state = MetaHistoryXmlHandler._HandlerState.PAGE
                    self._page_history_consumer.on_page_started()

                    self._page_history_handler = PageHistoryHandler(
                        lambda page, rev: self._page_history_consumer.on_revision_processed(page, rev)
                    )
                    self._page_history_handler.startElement(name, attrs)
            case MetaHistoryXmlHandler._HandlerState.PAGE:
                self._page_history_handler.startElement(name, attrs)

    def endElement(self, name):
        match self._state:
            case MetaHistoryXmlHandler._HandlerState.NONE:
                pass
            case MetaHistoryXmlHandler._HandlerState.PAGE:
                if name == WIKI_XML.PAGE:
                    self._page_history_handler.endElement(name)
                    self._page_history_consumer.on_page_processed()

                    self._page_history_handler = None
                    self._state = MetaHistoryXmlHandler._HandlerState.NONE
                else:
                    self._page_history_handler.endElement(name)

    def characters(self, content):
        match self._state:
            case MetaHistoryXmlHandler._HandlerState.NONE:
                pass
            case MetaHistoryXmlHandler._HandlerState.PAGE:
                self._page_history_handler.characters(content)


class PageImporter(PageHistoryConsumerInterface):
    """Replays the revisions of a dump into a wiki

    Revisions are appended to the store as they are, keeping their authors, timestamps and comments;
    no edit processing (summaries, permission checks) happens. Pages that already exist get the
    imported revisions appended after their own.
    The revisions of a page are collected while the page is parsed and stored together when it ends,
    so a page with an invalid revision is not imported at all.
    """

    def __init__(self, wiki, user: User):
        """Initialize the importer

        Args:
            wiki: the :class:`wikirevs.wiki.Wiki` to import into
            user: user recorded in the import log
        """
        self.wiki = wiki
        self.user = user
        self.imported_pages: list[Title] = []
        self.revisions_count = 0

        self._page_title: Title | None = None
        self._page_revisions: list[tuple[Content, DumpRevision]] = []

    def on_page_started(self) -> None:
        self._page_title = None
        self._page_revisions = []

    def on_revision_processed(self, page: DumpPage, revision: DumpRevision) -> None:
        if self._page_title is None:
            self._page_title = self.wiki.title(page.title)
            if self._page_title.is_virtual:
                raise VirtualNamespace(f'Can not import {self._page_title}', self._page_title)

        model = revision.model.strip() or None
        content = make_content(revision.get_text(), self._page_title, model, self.wiki.config)
        if revision.text_size >= 0 and revision.text_size != content.get_size():
            logger.warning(
                f'Revision {revision.id} of {page.title}: declared size {revision.text_size}, '
                f'actual size {content.get_size()}'
            )
        self._page_revisions.append((content, revision))

    def on_page_processed(self) -> None:
        if self._page_title is None:
            # page without revisions
            return
        store = self.wiki.store
        title = self._page_title

        with store.lock_page(title):
            record = store.page_by_title(title)
            if record is None:
                record = store.create_page(title, self._page_revisions[0][0].model)
            latest = store.latest(record.page_id)
            is_new = latest is None
            was_countable = self.wiki.classifier.is_countable(latest.content if latest else None, title)

            for content, revision in self._page_revisions:
                timestamp = revision.timestamp.strip()
                store.append(
                    record.page_id,
                    content,
                    revision.contributor.strip() or self.user.name,
                    revision.comment,
                    is_minor=revision.is_minor,
                    timestamp=parse_timestamp(timestamp) if timestamp else None,
                )

            content = self._page_revisions[-1][0]
            is_countable = self.wiki.classifier.is_countable(content, title)
            store.update_site_stats(
                edits=len(self._page_revisions),
                pages=int(is_new),
                good_articles=int(is_countable) - int(was_countable),
            )
            store.set_links(record.page_id, content.get_links(self.wiki.config))

        revisions_count = len(self._page_revisions)
        self.revisions_count += revisions_count
        comment = f'{revisions_count} revisions imported'
        store.add_log_entry(LogEntry('import', title, record.page_id, self.user.name, comment))
        self.imported_pages.append(title)
        logger.info(f'Imported {revisions_count} revisions of {title}')


def import_pages(wiki, source, user: User | None = None) -> list[Title]:
    """Import pages from a MediaWiki XML export file

    Args:
        wiki: the :class:`wikirevs.wiki.Wiki` to import into
        source: file path or binary/text file object
        user: importing user; defaults to the session user

    Returns:
        titles of the imported pages, in document order

    Raises:
        PermissionDenied: if the user may not import pages
        InvalidTitle: if a page title in the file is invalid
        InvalidModel: if a revision has an unknown content model
    """
    user = user or wiki.session_user
    if not wiki.authority.has_capability(user, 'import'):
        raise PermissionDenied(f'User {user.name} is not allowed to import pages', action='import')

    importer = PageImporter(wiki, user)
    handler = MetaHistoryXmlHandler(importer)
    parser = xml.sax.make_parser()
    parser.setFeature(xml.sax.handler.feature_namespaces, 0)  # turn off name spaces
    parser.setContentHandler(handler)
    try:
        parser.parse(source)
    except InvalidModel as e:
        logger.error(f'Import failed, unknown content model: {e.model}')
        raise
    logger.info(f'Imported {len(importer.imported_pages)} pages ({importer.revisions_count} revisions)')
    return importer.imported_pages


def export_pages(wiki, titles: Iterable[str | Title], dest) -> int:
    """Write the full history of the pages as a MediaWiki XML export file

    Args:
        wiki: the :class:`wikirevs.wiki.Wiki` to export from
        titles: pages to export; missing pages are skipped
        dest: text file object

    Returns:
        number of exported pages
    """
    store = wiki.store
    generator = XMLGenerator(dest, encoding='utf-8', short_empty_elements=True)
    generator.startDocument()
    generator.startElement(WIKI_XML.ROOT, {'xmlns': WIKI_XML.NS, 'version': WIKI_XML.VERSION})
    generator.characters('\n')

    exported = 0
    for title in titles:
        title = wiki.title(title)
        record = store.page_by_title(title)
        if record is None or record.latest is None:
            logger.warning(f'Page {title} does not exist, not exported')
            continue

        generator.startElement(WIKI_XML.PAGE, {})
        _text_element(generator, WIKI_XML.TITLE, title.prefixed_text)
        _text_element(generator, WIKI_XML.PAGE_NS, str(title.namespace))
        _text_element(generator, WIKI_XML.ID, str(record.page_id))
        for revision in store.history(record.page_id):
            generator.startElement(WIKI_XML.REVISION, {})
            _text_element(generator, WIKI_XML.ID, str(revision.id))
            if revision.parent_id is not None:
                _text_element(generator, WIKI_XML.REV_PARENT_ID, str(revision.parent_id))
            _text_element(generator, WIKI_XML.REV_TIMESTAMP, format_timestamp(revision.timestamp))

            generator.startElement(WIKI_XML.REV_CONTRIBUTOR, {})
            if is_ip_address(revision.author):
                _text_element(generator, WIKI_XML.REV_CONTRIBUTOR_IP, revision.author)
            else:
                _text_element(generator, WIKI_XML.REV_CONTRIBUTOR_USERNAME, revision.author)
            generator.endElement(WIKI_XML.REV_CONTRIBUTOR)

            if revision.is_minor:
                generator.startElement(WIKI_XML.REV_MINOR, {})
                generator.endElement(WIKI_XML.REV_MINOR)
            if revision.comment:
                _text_element(generator, WIKI_XML.REV_COMMENT, revision.comment)
            _text_element(generator, WIKI_XML.REV_MODEL, revision.model.value)
            _text_element(generator, WIKI_XML.REV_FORMAT, _MODEL_FORMATS[revision.model.value])
            generator.startElement(WIKI_XML.REV_TEXT, {'bytes': str(revision.size), 'xml:space': 'preserve'})
            generator.characters(revision.content.native_data)
            generator.endElement(WIKI_XML.REV_TEXT)
            _text_element(generator, WIKI_XML.REV_SHA1, revision.sha1)
            generator.endElement(WIKI_XML.REVISION)
        generator.endElement(WIKI_XML.PAGE)
        generator.characters('\n')
        exported += 1

    generator.endElement(WIKI_XML.ROOT)
    generator.endDocument()
    logger.info(f'Exported {exported} pages at {format_timestamp(utc_now())}')
    return exported


def _text_element(generator: XMLGenerator, name: str, text: str) -> None:
    generator.startElement(name, {})
    generator.characters(text)
    generator.endElement(name)
