"""Allow-list validation for rich-text document trees."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from journal_digest.errors import ValidationFailed

ROOT_NODE_TYPE = "doc"

ALLOWED_NODE_TYPES = frozenset(
    {
        "doc",
        "paragraph",
        "text",
        "heading",
        "bulletList",
        "orderedList",
        "listItem",
        "blockquote",
        "codeBlock",
        "horizontalRule",
        "hardBreak",
    }
)

ALLOWED_MARK_TYPES = frozenset(
    {"bold", "italic", "underline", "strike", "code", "subscript", "superscript"}
)

# Editor JSON stores children under "content"; "children" is accepted too.
_CHILD_KEYS = ("content", "children")


def _children(node: Mapping[str, Any]) -> tuple[bool, list[Any]]:
    """Return (ok, children). ok is False when a child key holds a non-list."""
    for key in _CHILD_KEYS:
        if key in node and node[key] is not None:
            value = node[key]
            if not isinstance(value, list):
                return False, []
            return True, value
    return True, []


def _valid_marks(marks: Any) -> bool:
    if marks is None:
        return True
    if not isinstance(marks, list):
        return False
    for mark in marks:
        if not isinstance(mark, Mapping):
            return False
        mark_type = mark.get("type")
        if not isinstance(mark_type, str) or mark_type not in ALLOWED_MARK_TYPES:
            return False
    return True


def _valid_nodes(nodes: list[Any]) -> bool:
    for node in nodes:
        if not isinstance(node, Mapping):
            return False
        node_type = node.get("type")
        if not isinstance(node_type, str) or node_type not in ALLOWED_NODE_TYPES:
            return False
        if not _valid_marks(node.get("marks")):
            return False
        ok, children = _children(node)
        if not ok or not _valid_nodes(children):
            return False
    return True


def validate_content(tree: Any) -> bool:
    """Check a document tree against the node and mark allow-lists.

    Never raises. Returns False on the first violation found depth-first:
    non-mapping input, a root that is not ``doc``, a non-list children
    field, or any node/mark type outside the allow-lists.
    """
    if not isinstance(tree, Mapping):
        return False
    if tree.get("type") != ROOT_NODE_TYPE:
        return False
    children = next((tree[key] for key in _CHILD_KEYS if key in tree), None)
    if not isinstance(children, list):
        return False
    if not _valid_marks(tree.get("marks")):
        return False
    return _valid_nodes(children)


def ensure_valid_content(tree: Any) -> Mapping[str, Any]:
    """Return the tree unchanged or raise ValidationFailed."""
    if not validate_content(tree):
        raise ValidationFailed()
    return tree
