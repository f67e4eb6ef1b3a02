from typing import List, Optional

from markdown_it import MarkdownIt
from markdown_it.token import Token

from .tree import Node, build_tree, inline_tokens, to_tokens


def create_markdown() -> MarkdownIt:
    """
    CommonMark parser/renderer used for story files.

    Soft line breaks render as <br />. ``text_join`` is disabled so backslash
    escapes still arrive as their own tokens and can be kept for macro scanning.
    """
    md = MarkdownIt('commonmark', {'breaks': True})
    md.disable('text_join')
    return md


class MarkdownDocument:
    """Parses Markdown into a document tree and renders trees back to HTML."""

    def __init__(self, md: MarkdownIt = None):
        self.md = md or create_markdown()
        self.env: dict = {}

    def parse(self, source: str) -> Node:
        self.env = {}
        tokens: List[Token] = self.md.parse(source, self.env)
        return build_tree(tokens)

    def render(self, root: Node) -> str:
        return self.md.renderer.render(to_tokens(root), self.md.options, self.env)

    def decode_destination(self, url: Optional[str]) -> str:
        """Undoes the percent-encoding markdown-it applies to link and image URLs."""
        if not url:
            return ''
        return self.md.normalizeLinkText(url)

    def render_inline(self, node: Node) -> str:
        """Renders a container's inline children, e.g. a link's visible text."""
        return self.md.renderer.renderInline(inline_tokens(node), self.md.options, self.env)
