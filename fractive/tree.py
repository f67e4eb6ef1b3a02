"""
Document tree.

markdown-it hands back a flat token stream; the macro passes need a real tree
they can splice while walking it. ``build_tree`` turns the token stream into
linked ``Node`` objects and ``to_tokens`` turns the (rewritten) tree back into
tokens for markdown-it's renderer.
"""

from collections import namedtuple
from typing import Iterator, List, Optional, Tuple

from markdown_it.token import Token

# Token types renamed to the node kinds the compiler works with
_NODE_TYPES = {
    'code_inline': 'code',
    'fence': 'code_block',
    'text_special': 'text',
}

WalkEvent = namedtuple('WalkEvent', ['node', 'entering'])


class Node:
    def __init__(self, type: str, literal: Optional[str] = None,
                 sourcepos: Optional[Tuple[int, int]] = None,
                 inline: bool = False, container: bool = False):
        self.type = type
        self.literal = literal
        self.sourcepos = sourcepos
        self.inline = inline  # lives inside a paragraph/heading/cell's inline content
        self.container = container
        self.destination: Optional[str] = None
        self.token: Optional[Token] = None    # leaf token, or opening token of a container
        self.closing: Optional[Token] = None
        self.parent: Optional['Node'] = None
        self.first_child: Optional['Node'] = None
        self.last_child: Optional['Node'] = None
        self.prev: Optional['Node'] = None
        self.next: Optional['Node'] = None

    def __repr__(self):
        return f"Node({self.type!r}, {self.literal!r})"

    @property
    def children(self) -> Iterator['Node']:
        child = self.first_child
        while child is not None:
            # Read ahead so the caller may unlink the child it was handed
            following = child.next
            yield child
            child = following

    def append_child(self, child: 'Node') -> None:
        child.unlink()
        child.parent = self
        if self.last_child is None:
            self.first_child = self.last_child = child
        else:
            self.last_child.next = child
            child.prev = self.last_child
            self.last_child = child

    def insert_after(self, sibling: 'Node') -> None:
        sibling.unlink()
        sibling.next = self.next
        if sibling.next is not None:
            sibling.next.prev = sibling
        sibling.prev = self
        self.next = sibling
        sibling.parent = self.parent
        if sibling.parent is not None and sibling.next is None:
            sibling.parent.last_child = sibling

    def insert_before(self, sibling: 'Node') -> None:
        sibling.unlink()
        sibling.prev = self.prev
        if sibling.prev is not None:
            sibling.prev.next = sibling
        sibling.next = self
        self.prev = sibling
        sibling.parent = self.parent
        if sibling.parent is not None and sibling.prev is None:
            sibling.parent.first_child = sibling

    def unlink(self) -> None:
        if self.prev is not None:
            self.prev.next = self.next
        elif self.parent is not None:
            self.parent.first_child = self.next
        if self.next is not None:
            self.next.prev = self.prev
        elif self.parent is not None:
            self.parent.last_child = self.prev
        self.parent = self.prev = self.next = None

    def split(self, literal: str, sourcepos: Optional[Tuple[int, int]] = None) -> 'Node':
        """Returns a detached leaf of the same kind holding ``literal``."""
        node = Node(self.type, literal, sourcepos or self.sourcepos, self.inline)
        node.token = self.token
        return node

    def walker(self) -> 'NodeWalker':
        return NodeWalker(self)


class NodeWalker:
    """
    Depth-first cursor over a tree that tolerates splicing.

    Containers produce an entering and an exiting event, leaves a single
    entering event. The next position is computed when an event is handed
    out, so the node just returned may be unlinked or replaced; any newly
    inserted nodes are only visited if the caller calls ``resume_at``.
    """

    def __init__(self, root: Node):
        self.root = root
        self.current: Optional[Node] = root
        self.entering = True

    def __iter__(self):
        return self

    def __next__(self) -> WalkEvent:
        node, entering = self.current, self.entering
        if node is None:
            raise StopIteration

        if entering and node.container:
            if node.first_child is not None:
                self.current = node.first_child
                self.entering = True
            else:
                self.entering = False
        elif node is self.root:
            self.current = None
        elif node.next is None:
            self.current = node.parent
            self.entering = False
        else:
            self.current = node.next
            self.entering = True

        return WalkEvent(node, entering)

    def resume_at(self, node: Node, entering: bool = True) -> None:
        """Makes ``node`` the next event, discarding the precomputed position."""
        self.current = node
        self.entering = entering


# --- Building from markdown-it tokens ---

def build_tree(tokens: List[Token]) -> Node:
    """Builds a document tree from a markdown-it block token stream."""
    root = Node('document', container=True)
    _attach(root, tokens, inline=False, line=None)
    return root


def _attach(parent: Node, tokens: List[Token], inline: bool, line: Optional[int]) -> None:
    stack = [parent]
    for token in tokens:
        if token.nesting == -1:
            stack.pop().closing = token
            continue

        if token.type == 'inline':
            start = token.map[0] + 1 if token.map else None
            _attach(stack[-1], token.children or [], inline=True, line=start)
            continue

        node = _node_from_token(token, inline, line)
        stack[-1].append_child(node)
        if token.nesting == 1:
            stack.append(node)
        elif token.type == 'image':
            _attach(node, token.children or [], inline=True, line=line)

        if line is not None:
            if token.type in ('softbreak', 'hardbreak'):
                line += 1
            elif token.type == 'code_inline':
                line += token.content.count('\n')


def _node_from_token(token: Token, inline: bool, line: Optional[int]) -> Node:
    container = token.nesting == 1 or token.type == 'image'
    if token.nesting == 1:
        node_type = token.type[:-len('_open')]
    else:
        node_type = _NODE_TYPES.get(token.type, token.type)

    if token.map:
        # Fenced code starts on the line after its opening fence
        sourcepos = (token.map[0] + 1 + (1 if token.type == 'fence' else 0), 1)
    elif line is not None:
        sourcepos = (line, 1)
    else:
        sourcepos = None

    node = Node(node_type, sourcepos=sourcepos, inline=inline, container=container)
    if token.type == 'text_special':
        # Keep backslash escapes as written; the compiler strips them after scanning
        node.literal = token.markup if token.info == 'escape' else token.content
        node.token = Token('text', '', 0, content=node.literal)
    else:
        node.token = token
        if not container:
            node.literal = token.content
    if token.type in ('link_open', 'image'):
        node.destination = token.attrGet('href' if token.type == 'link_open' else 'src')
    return node


# --- Back to tokens ---

def to_tokens(root: Node) -> List[Token]:
    """Flattens a (sub)tree into a markdown-it token stream for rendering."""
    return _block_tokens(root)


def inline_tokens(node: Node) -> List[Token]:
    """Flattens a container's inline children into inline tokens."""
    tokens: List[Token] = []
    for child in node.children:
        tokens.extend(_node_tokens(child))
    return tokens


def _block_tokens(node: Node) -> List[Token]:
    tokens: List[Token] = []
    run: List[Token] = []
    for child in node.children:
        if child.inline:
            run.extend(_node_tokens(child))
            continue
        if run:
            tokens.append(Token('inline', '', 0, children=run))
            run = []
        tokens.extend(_node_tokens(child))
    if run:
        tokens.append(Token('inline', '', 0, children=run))
    return tokens


def _node_tokens(node: Node) -> List[Token]:
    if node.type == 'image':
        return [node.token.copy(children=inline_tokens(node))]
    if node.container:
        inner = inline_tokens(node) if node.inline else _block_tokens(node)
        return [node.token] + inner + [node.closing]
    if node.token is None:
        return [Token(node.type, '', 0, content=node.literal or '')]
    if node.literal is None:
        return [node.token]
    return [node.token.copy(content=node.literal)]


# --- Debugging ---

def format_tree(root: Node) -> str:
    """One line per node, indented by depth."""
    lines = []
    depth = 0
    for node, entering in root.walker():
        if node.container and not entering:
            depth -= 1
            continue
        literal = node.literal.replace('\n', '\\n') if node.literal else ''
        lines.append(f"{'  ' * depth}{node.type}: {literal}")
        if node.container:
            depth += 1
    return '\n'.join(lines)
