from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from wikirevs.content.model import Content
from wikirevs.title import Title


@dataclass
class ParserOptions:
    """Options passed through to the renderer

    Attributes:
        user_name: user the output is rendered for (signatures, preferences)
        interface_language: language of interface messages
        extra: renderer specific options
    """

    user_name: str | None = None
    interface_language: str = 'en'
    extra: dict = field(default_factory=dict)


@dataclass
class ParserOutput:
    """Rendered page

    Attributes:
        text: display markup produced by the renderer
        links: pages the content links to
    """

    text: str
    links: list[Title] = field(default_factory=list)

    def get_text(self) -> str:
        return self.text


class Renderer(Protocol):
    """Turns content into display markup (the wiki doesn't render anything itself)"""

    def render(self, content: Content, title: Title, options: ParserOptions) -> str: ...
