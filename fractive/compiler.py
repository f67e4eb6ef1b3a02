import logging
from typing import Optional, Set, Tuple

from markdown_it.common.utils import escapeHtml

from .errors import (
    CompileError,
    DuplicateSection,
    InvalidLinkMacro,
    InvalidSectionPlacement,
    SectionAsImageSource,
    UnknownMacro,
    UnrecognizedMacro,
)
from .macros import (
    MacroKind,
    MacroToken,
    scan_macro,
    split_destination,
    unescape,
)
from .markdown import MarkdownDocument
from .tree import Node, NodeWalker, format_tree

logger = logging.getLogger(__name__)

# Leaf kinds whose literal text is scanned for macros
SCANNED_TYPES = ('text', 'code', 'code_block')


class StoryCompiler:
    """
    Story Compiler
    Rewrites Markdown story files into HTML the story engine can run.

    Features:
    - Section declarations ({{Name}}) become hidden section containers
    - Link destinations ({@Section}, {#function}, {@Section:inline}) become engine anchors
    - Image sources ({#function}, {$variable}) become engine-resolved images
    - Macros in text and code ({@...}, {#...}, {$...}) become expansion spans
    - Backslash escapes (\\{) keep literal braces out of macro scanning

    One compiler instance serves one build: inline link ids and section ids are
    unique across every file it compiles.
    """

    def __init__(self, debug: bool = False):
        self.markdown = MarkdownDocument()
        self.debug = debug
        self.next_inline_id: int = 0
        self.section_ids: Set[str] = set()  # Committed by successfully compiled files
        # Per-file state, reset by compile()
        self.path: Optional[str] = None
        self.section_count: int = 0
        self.file_section_ids: Set[str] = set()

    def render(self, source: str, path: str = '<story>') -> Optional[str]:
        """
        Compiles one story file, logging instead of raising on author errors.
        Returns the HTML, or None if the file failed to compile.
        """
        try:
            return self.compile(source, path)
        except CompileError as exc:
            logger.error("%s", exc)
            return None

    def compile(self, source: str, path: str = '<story>') -> str:
        """Compiles one story file's Markdown source to HTML. Raises CompileError."""
        self.path = path
        self.section_count = 0
        self.file_section_ids = set()

        root = self.markdown.parse(source)
        self._log_tree("RAW AST", root)

        merge_text_runs(root)
        self._log_tree("CONSOLIDATED AST", root)

        walker = root.walker()
        for node, entering in walker:
            if node.type == 'link':
                if not entering:
                    self._rewrite_link(node)
            elif node.type == 'image':
                self._rewrite_image(walker, node)
            elif node.type in SCANNED_TYPES:
                self._rewrite_text(walker, node)

        strip_escapes(root)

        if root.first_child is None:
            return ''
        if self.section_count == 0:
            raise InvalidSectionPlacement(
                "Story files must begin with a section declaration like {{Start}}"
            ).locate(path, root.first_child.sourcepos)

        # Close the final section div
        root.append_child(Node('html_inline', '</div>'))
        self._log_tree("FINAL AST", root)

        self.section_ids |= self.file_section_ids
        return self.markdown.render(root)

    # --- Errors and diagnostics ---

    def _fatal_error(self, error_class, message: str, node: Optional[Node] = None,
                     line_offset: int = 0, column_offset: int = 0):
        """Raises a compile error located at ``node`` plus any scanned offsets."""
        raise error_class(message).locate(self.path, self._position(node, line_offset, column_offset))

    @staticmethod
    def _position(node: Optional[Node], line_offset: int = 0,
                  column_offset: int = 0) -> Optional[Tuple[int, int]]:
        if node is None or node.sourcepos is None:
            return None
        line, column = node.sourcepos
        if line_offset:
            return line + line_offset, 1 + column_offset
        return line, column + column_offset

    def _log_tree(self, title: str, root: Node) -> None:
        if self.debug:
            logger.debug("%s\n%s", title, format_tree(root))

    # --- Text, code and code blocks ---

    def _rewrite_text(self, walker: NodeWalker, node: Node) -> None:
        """
        Rewrites the first macro in a text/code leaf and resumes the walk at the
        inserted markup. Any remainder becomes a new leaf the walk visits next.
        """
        literal = node.literal or ''
        line_offset = 0
        column_offset = 0
        i = 0
        while i < len(literal):
            char = literal[i]
            if char == '\\':
                if literal[i + 1:i + 2] == '\n':
                    line_offset += 1
                    column_offset = 0
                else:
                    column_offset += 2
                i += 2
                continue
            if char == '\n':
                line_offset += 1
                column_offset = 0
                i += 1
                continue
            if char == '{':
                try:
                    token = scan_macro(literal, i)
                except CompileError as exc:
                    raise exc.locate(self.path, self._position(node, line_offset, column_offset))

                if token.kind is MacroKind.SECTION_BEGIN:
                    inserted = self._begin_section(node, token, line_offset, column_offset)
                else:
                    inserted = self._splice_macro(node, token, line_offset, column_offset)
                walker.resume_at(inserted)
                return
            column_offset += 1
            i += 1

    def _splice_macro(self, node: Node, token: MacroToken, line_offset: int, column_offset: int) -> Node:
        """Replaces ``token``'s span of ``node`` with an expansion span."""
        literal = node.literal
        pre_content = literal[:token.start]
        post_content = literal[token.end:]

        attrs = f' data-expand-macro="{escapeHtml(token.reference)}"'
        if node.type == 'code':
            markup = f'<code><span{attrs}></span></code>'
        elif node.type == 'code_block':
            markup = f'<pre><code><span{attrs}></span></code></pre>\n'
        else:
            markup = f'<span{attrs}></span>'

        html_node = Node('html_inline', markup, node.sourcepos, inline=node.inline)
        node.literal = pre_content
        node.insert_after(html_node)

        if post_content:
            position = self._position(node, line_offset, column_offset + len(token.text))
            html_node.insert_after(node.split(post_content, position))

        # Drop the leading leaf now that the insert is attached to the tree
        if not pre_content:
            node.unlink()

        return html_node

    # --- Sections ---

    def _begin_section(self, node: Node, token: MacroToken, line_offset: int, column_offset: int) -> Node:
        """Replaces the paragraph declaring a section with the section's opening markup."""
        section_id = token.identifier
        paragraph = node.parent

        def fail(error_class, message):
            self._fatal_error(error_class, message, node, line_offset, column_offset)

        if node.type != 'text' or paragraph is None:
            fail(InvalidSectionPlacement, f'Section macro "{token.text}" must be defined in its own paragraph')
        if token.start > 0 or node.prev is not None:
            fail(InvalidSectionPlacement, f'Section macro "{token.text}" must be defined in its own paragraph/on its own line')
        if node.literal[token.end:].strip() or node.next is not None:
            fail(InvalidSectionPlacement, f'Section macro "{token.text}" must be defined in its own paragraph/on its own line')
        if paragraph.type != 'paragraph' or paragraph.parent is None or paragraph.parent.type != 'document':
            fail(InvalidSectionPlacement, f'Section macro "{token.text}" cannot be defined inside another block element')
        if self.section_count == 0 and paragraph.prev is not None:
            fail(InvalidSectionPlacement, f'Content before the first section declaration "{token.text}"')
        if not section_id:
            fail(UnknownMacro, f'Section macro "{token.text}" has no name')
        if section_id in self.section_ids or section_id in self.file_section_ids:
            fail(DuplicateSection, f'Section "{section_id}" is declared more than once')

        closing = '</div>' if self.section_count > 0 else ''
        markup = f'{closing}<div id="{escapeHtml(section_id)}" class="section" hidden="true">\n'
        html_node = Node('html_inline', markup, paragraph.sourcepos)
        paragraph.insert_after(html_node)
        paragraph.unlink()

        self.section_count += 1
        self.file_section_ids.add(section_id)
        return html_node

    # --- Links ---

    def _rewrite_link(self, node: Node) -> None:
        """
        Rewrites a link whose destination is a macro. Called when the walk
        leaves the link, so its children (the link text) are already rewritten.
        """
        url = self.markdown.decode_destination(node.destination)
        if not url.startswith('{'):
            return  # Ordinary link

        try:
            identifier, modifier = split_destination(url)
        except CompileError as exc:
            raise exc.locate(self.path, self._position(node))
        kind = MacroKind.for_sigil(identifier[:1])
        name = identifier[1:]

        if modifier == 'inline':
            if kind not in (MacroKind.SECTION_REF, MacroKind.FUNCTION_REF, MacroKind.VARIABLE_REF):
                self._fatal_error(UnrecognizedMacro, f'Unrecognized macro "{url}" in link destination', node)
            # The leading underscore keeps the link disabled until the engine moves it into the current section
            inline_id = f'_inline-{self.next_inline_id}'
            self.next_inline_id += 1
            self._replace_link(node, 'replace-with', name, inline_id)
        elif modifier is not None:
            self._fatal_error(UnrecognizedMacro, f'Unrecognized macro modifier "{modifier}" in link destination', node)
        elif kind is MacroKind.SECTION_REF:
            self._replace_link(node, 'goto-section', name)
        elif kind is MacroKind.FUNCTION_REF:
            self._replace_link(node, 'call-function', name)
        elif kind is MacroKind.VARIABLE_REF:
            self._fatal_error(InvalidLinkMacro, "Variable macros can't be used as link destinations", node)
        else:
            self._fatal_error(UnrecognizedMacro, f'Unrecognized macro "{url}" in link destination', node)

    def _replace_link(self, node: Node, attr: str, value: str, element_id: Optional[str] = None) -> None:
        # The link becomes raw markup, out of reach of the final escape pass
        strip_escapes(node)
        link_text = self.markdown.render_inline(node)
        id_attr = f' id="{element_id}"' if element_id is not None else ''
        markup = f'<a href="#"{id_attr} data-{attr}="{escapeHtml(value)}">{link_text}</a>'
        node.insert_before(Node('html_inline', markup, node.sourcepos, inline=node.inline))
        node.unlink()

    # --- Images ---

    def _rewrite_image(self, walker: NodeWalker, node: Node) -> None:
        """Rewrites every image; plain ones too, so the alt text shows on hover."""
        alt = ''
        if node.first_child is not None and node.first_child.type == 'text':
            alt = node.first_child.literal
            node.first_child.unlink()
        alt = escapeHtml(unescape(alt))

        url = self.markdown.decode_destination(node.destination)
        if not url.startswith('{'):
            markup = f'<img src="{escapeHtml(node.destination or "")}" alt="{alt}" title="{alt}">'
        else:
            try:
                identifier, _ = split_destination(url)
            except CompileError as exc:
                raise exc.locate(self.path, self._position(node))
            kind = MacroKind.for_sigil(identifier[:1])
            if kind is MacroKind.SECTION_REF:
                self._fatal_error(SectionAsImageSource,
                                  f'Invalid macro {url} in image URL (section macros cannot be used as image sources)', node)
            elif kind in (MacroKind.FUNCTION_REF, MacroKind.VARIABLE_REF):
                markup = (f'<img data-image-source-macro="{escapeHtml(identifier[1:])}" src="#" '
                          f'alt="{alt}" title="{alt}">')
            else:
                self._fatal_error(UnknownMacro, f'Unknown macro {url} in image URL', node)

        html_node = Node('html_inline', markup, node.sourcepos, inline=node.inline)
        node.insert_before(html_node)
        node.unlink()
        walker.resume_at(html_node)


def merge_text_runs(root: Node) -> None:
    """
    Merges adjacent sibling text leaves. markdown-it splits text around
    escapes and punctuation; a macro must sit in a single literal to be scanned.
    """
    previous = None
    for node, entering in root.walker():
        if node.type == 'text' and previous is not None and previous.type == 'text':
            previous.literal += node.literal or ''
            node.unlink()
        else:
            previous = node


def strip_escapes(root: Node) -> None:
    """Removes escape backslashes from every scanned literal once all macros are rewritten."""
    for node, entering in root.walker():
        if node.type in SCANNED_TYPES and node.literal:
            node.literal = unescape(node.literal)
