import re

from tree_sitter import Node

from codex_explain.models import Span

_STRING_PREFIX_RE = re.compile(r"^[rRbBuUfF]*")


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def node_span(node: Node) -> Span:
    """1-based inclusive line range of a node."""
    return Span(start_line=node.start_point[0] + 1, end_line=node.end_point[0] + 1)


def strip_quotes(literal: str) -> str:
    body = _STRING_PREFIX_RE.sub("", literal, count=1)
    for quote in ('"""', "'''", '"', "'", "`"):
        if len(body) >= 2 * len(quote) and body.startswith(quote) and body.endswith(quote):
            return body[len(quote) : -len(quote)]
    return body
