import multiprocessing
from dataclasses import dataclass

import mwparserfromhell as mwp
import mwparserfromhell.nodes as mwp_nodes

from wikirevs.content.model import Content

logger = multiprocessing.get_logger()

# section index addressing a new section appended at the end of the page
NEW_SECTION = 'new'
# section index addressing the whole page
WHOLE_PAGE = ''


@dataclass
class SectionInfo:
    """Heading delimited section of a page

    Attributes:
        index: ordinal position in document order (0 is the text before the first heading)
        level: heading level, i.e. number of '=' markers (0 for the lead section)
        title: heading text
        path: titles of all parent sections and this one joined with //, e.g. 'History // 1980'
    """

    index: int
    level: int
    title: str
    path: str


@dataclass
class _Piece:
    level: int
    title: str
    text: str


class HeadingHandler:
    """Keeps track of the section hierarchy while headings are visited in document order"""

    def __init__(self):
        """Initializes the heading handler instance"""
        self.open_headings: list[tuple[int, str]] = []

    def next_section(self, level: int, title: str) -> str:
        """Processing enters new section

        Args:
            level: heading level
            title: heading text
        Returns:
            the section full path, e.g.: 'History // 1980 // Details'
        """
        # close siblings and more nested sections of previous headings
        while self.open_headings and self.open_headings[-1][0] >= level:
            self.open_headings.pop()
        self.open_headings.append((level, title))
        return ' // '.join(t for _, t in self.open_headings)


class SectionEditor:
    """Extracts and replaces numbered sections of wikitext content

    Sections are numbered in document order: 0 is the lead (text before the first heading),
    then every heading starts the next section, regardless of its level. A section spans its heading,
    its text and all its more nested subsections.
    """

    def list_sections(self, content: Content) -> list[SectionInfo]:
        """List the headings of the content (the lead section is not included)"""
        if not content.supports_sections:
            return []

        sections = []
        headings_handler = HeadingHandler()
        for i, piece in enumerate(self._split(content.native_data)):
            if i == 0:
                continue
            path = headings_handler.next_section(piece.level, piece.title)
            sections.append(SectionInfo(i, piece.level, piece.title, path))
        return sections

    def get_section(self, content: Content, section: str | int) -> str | None:
        """Text of a single section, including its heading and subsections

        Returns:
            the section text, or None if the section doesn't exist or the content has no sections
        """
        if not content.supports_sections:
            return None

        index = self._parse_index(section)
        if index == WHOLE_PAGE:
            return content.native_data
        if index is None or index == NEW_SECTION:
            return None

        pieces = self._split(content.native_data)
        if index >= len(pieces):
            return None
        end = self._section_end(pieces, index)
        return ''.join(p.text for p in pieces[index:end])

    def replace_section(
        self, content: Content, section: str | int, text: str, section_title: str | None = None
    ) -> Content | None:
        """Replace a section of the content

        Args:
            content: current page content
            section: section index; '' replaces the whole page, 'new' appends a new section
            text: replacement text, including the heading (unless section 0 or 'new' are replaced)
            section_title: heading of the new section (only used with 'new')

        Returns:
            the updated content (the given content if the section doesn't exist),
            or None if the content model doesn't support sections
        """
        if not content.supports_sections:
            logger.debug(f'Content model {content.model.value} does not support sections')
            return None

        content_class = type(content)
        index = self._parse_index(section)

        if index == WHOLE_PAGE:
            return content_class(text)

        if index == NEW_SECTION:
            if section_title:
                text = f'== {section_title} ==\n\n{text}'
            old_text = content.native_data
            if old_text.strip():
                text = f'{old_text.rstrip()}\n\n{text}'
            return content_class(text)

        if index is None:
            logger.debug(f'Invalid section index "{section}"; leaving the content unchanged')
            return content

        pieces = self._split(content.native_data)
        if index >= len(pieces):
            logger.debug(f'Section {index} does not exist ({len(pieces)} sections); leaving the content unchanged')
            return content

        end = self._section_end(pieces, index)
        before = ''.join(p.text for p in pieces[:index])
        after = ''.join(p.text for p in pieces[end:])
        if text and after:
            # keep a blank line between the replacement and the next section
            text = text.rstrip() + '\n\n'
        return content_class(before + text + after)

    @staticmethod
    def _parse_index(section: str | int | None) -> int | str | None:
        if section is None:
            return WHOLE_PAGE
        if isinstance(section, int):
            return section if section >= 0 else None

        section = str(section).strip()
        if section == WHOLE_PAGE:
            return WHOLE_PAGE
        if section.lower() == NEW_SECTION:
            return NEW_SECTION
        if section.isdigit():
            return int(section)
        return None

    @staticmethod
    def _section_end(pieces: list[_Piece], index: int) -> int:
        """Index of the first piece after the section (and its subsections)"""
        end = index + 1
        if index == 0:
            # the lead has no subsections
            return end
        level = pieces[index].level
        while end < len(pieces) and pieces[end].level > level:
            end += 1
        return end

    @staticmethod
    def _split(text: str) -> list[_Piece]:
        """Split the text into flat sections (the lead first); joining the pieces gives back the text"""
        wikicode = mwp.parse(text)
        pieces = []
        for i, section in enumerate(wikicode.get_sections(include_lead=True, flat=True)):
            if i == 0:
                pieces.append(_Piece(0, '', str(section)))
                continue
            heading = section.nodes[0]
            if not isinstance(heading, mwp_nodes.Heading):
                # get_sections always starts non-lead sections with their heading
                raise ValueError(f'Unexpected section start: {heading!r}')
            pieces.append(_Piece(heading.level, heading.title.strip_code().strip(), str(section)))
        return pieces
