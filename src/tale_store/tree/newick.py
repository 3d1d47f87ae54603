"""Bracket-notation codec for TALE family cluster trees.

Trees are stored as Newick-like text whose leaves are durable ``tale`` row
ids. Every child of an internal node carries the parent's merge distance as
its branch length, so the distance is emitted once per child and read back
from the first child only.

Example (two leaves merged at distance 2.0)::

    (
    \t1:2,
    \t2:2
    );
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping
from typing import TypeVar

from tale_store.document.models import ClusterTree
from tale_store.errors import TreeEncodingError, TreeParseError

T = TypeVar("T")

DISTANCE_DIGITS = 6


def format_distance(value: float) -> str:
    """Format a merge distance with up to six fractional digits.

    Trailing zeros and a dangling decimal point are trimmed; the decimal
    separator is always ``.``.

    Examples:
        >>> format_distance(3.4999999999999996)
        '3.5'
        >>> format_distance(2.0)
        '2'
    """
    text = f"{value:.{DISTANCE_DIGITS}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def _distance_suffix(value: float) -> str:
    if math.isfinite(value) and value != 0.0:
        return ":" + format_distance(value)
    return ""


def encode(tree: ClusterTree[T] | None, leaf_id: Callable[[T], int | None]) -> str | None:
    """Encode a cluster tree as bracket text keyed by integer leaf ids.

    Args:
        tree: Root of the tree, or None
        leaf_id: Maps a leaf element to its durable row id

    Returns:
        Encoded text terminated by ``;``, or None for a None tree

    Raises:
        TreeEncodingError: A leaf element has no id
    """
    if tree is None:
        return None
    return _encode_node(tree, leaf_id, 0) + ";"


def _encode_node(node: ClusterTree[T], leaf_id: Callable[[T], int | None], depth: int) -> str:
    if node.is_leaf:
        ident = leaf_id(node.element) if node.element is not None else None
        if ident is None:
            raise TreeEncodingError(f"Missing row id for tree leaf {node.element!r}")
        return str(ident)

    suffix = _distance_suffix(node.distance)
    indent = "\t" * (depth + 1)
    lines = [indent + _encode_node(child, leaf_id, depth + 1) + suffix for child in node.children]
    return "(\n" + ",\n".join(lines) + "\n" + "\t" * depth + ")"


class _IndexAssigner:
    """Hands out leaf cluster indices, reusing a known mapping when given."""

    def __init__(self, index_by_id: Mapping[int, int] | None):
        self.index_by_id = index_by_id
        self.next_index = 0

    def index_for(self, ident: int) -> int:
        if self.index_by_id is not None and ident in self.index_by_id:
            return self.index_by_id[ident]
        index = self.next_index
        self.next_index += 1
        return index


_DELIMITERS = frozenset(",();:")


class _Parser:
    """Recursive-descent parser over the bracket text."""

    def __init__(self, text: str, id_to_entity: Mapping[int, T], assigner: _IndexAssigner):
        self.text = text
        self.pos = 0
        self.id_to_entity = id_to_entity
        self.assigner = assigner

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def parse_tree(self) -> ClusterTree[T]:
        self.skip_whitespace()
        if self.peek() == "(":
            return self.parse_internal()
        return self.parse_leaf()

    def parse_internal(self) -> ClusterTree[T]:
        self.pos += 1  # "("
        children: list[ClusterTree[T]] = []
        distance: float | None = None
        while True:
            children.append(self.parse_tree())
            self.skip_whitespace()
            if self.peek() == ":":
                self.pos += 1
                value = self.parse_number()
                if distance is None:
                    distance = value
                self.skip_whitespace()
            char = self.peek()
            if char == ",":
                self.pos += 1
                continue
            if char == ")":
                self.pos += 1
                break
            if not char:
                raise TreeParseError("Unbalanced brackets, unexpected end of input", self.pos)
            raise TreeParseError(f"Unexpected character {char!r}", self.pos)
        return ClusterTree.internal(distance if distance is not None else 0.0, children)

    def parse_leaf(self) -> ClusterTree[T]:
        self.skip_whitespace()
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos].isdigit():
            self.pos += 1
        if start == self.pos:
            raise TreeParseError("Expected integer leaf id", start)
        ident = int(self.text[start : self.pos])
        entity = self.id_to_entity.get(ident)
        if entity is None:
            raise TreeParseError(f"Unknown leaf id {ident}", start)
        return ClusterTree.leaf(entity, self.assigner.index_for(ident))

    def parse_number(self) -> float:
        self.skip_whitespace()
        start = self.pos
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char in _DELIMITERS or char.isspace():
                break
            self.pos += 1
        token = self.text[start : self.pos]
        if not token:
            raise TreeParseError("Expected branch length", start)
        try:
            return float(token)
        except ValueError:
            raise TreeParseError(f"Invalid branch length {token!r}", start) from None


def decode(
    text: str | None,
    id_to_entity: Mapping[int, T],
    id_to_row_index: Mapping[int, int] | None = None,
) -> ClusterTree[T] | None:
    """Decode bracket text into a cluster tree.

    Args:
        text: Encoded tree; None or blank decodes to None
        id_to_entity: Resolves leaf ids to leaf elements
        id_to_row_index: Optional leaf id to cluster index mapping; without it
            indices are assigned in first-encounter order

    Returns:
        Root of the decoded tree

    Raises:
        TreeParseError: Malformed text or unresolvable leaf id
    """
    if text is None or not text.strip():
        return None
    parser = _Parser(text, id_to_entity, _IndexAssigner(id_to_row_index))
    root = parser.parse_tree()
    parser.skip_whitespace()
    if parser.peek() == ";":
        parser.pos += 1
        parser.skip_whitespace()
    if parser.pos < len(text):
        raise TreeParseError(f"Trailing content {parser.peek()!r}", parser.pos)
    return root


_TOKEN_RE = re.compile(r"\s*([(),;:]|[^(),;:\s]+)")


def extract_leaf_ids(text: str | None) -> set[int]:
    """Collect the integer leaf ids referenced by an encoded tree.

    Branch lengths after ``:`` are skipped, and an integer directly after a
    closing ``)`` is treated as a subtree label rather than a leaf. That rule
    matches the encoder above, which never labels internal nodes; change both
    together.
    """
    ids: set[int] = set()
    if not text:
        return ids
    previous = ""
    expect_length = False
    for match in _TOKEN_RE.finditer(text):
        token = match.group(1)
        if expect_length:
            expect_length = False
            previous = token
            continue
        if token == ":":
            expect_length = True
        elif token.isdigit() and previous != ")":
            ids.add(int(token))
        previous = token
    return ids


def simple_tree(elements: list[T]) -> ClusterTree[T] | None:
    """Build a placeholder tree by repeatedly merging the first two nodes.

    Used when a family was stored without a tree. All merge distances are 0.
    """
    if not elements:
        return None
    nodes: list[ClusterTree[T]] = [ClusterTree.leaf(element, i) for i, element in enumerate(elements)]
    while len(nodes) > 1:
        merged = ClusterTree.internal(0.0, [nodes[0], nodes[1]])
        nodes = [merged, *nodes[2:]]
    return nodes[0]
