"""Flatten document trees and markup strings into plain text."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")
_BLOCK_SEPARATOR = "\n\n"
_LIST_ITEM_PREFIX = "- "


def _node_children(node: Mapping[str, Any]) -> list[Any]:
    for key in ("content", "children"):
        value = node.get(key)
        if isinstance(value, list):
            return value
    return []


def _render_blocks(node: Mapping[str, Any]) -> list[str]:
    """Render a node into a list of block strings in document order."""
    if node.get("type") == "text":
        text = str(node.get("text") or "").strip()
        return [text] if text else []

    blocks: list[str] = []
    inline: list[str] = []

    def flush() -> None:
        text = "".join(inline).strip()
        inline.clear()
        if text:
            blocks.append(text)

    for child in _node_children(node):
        if not isinstance(child, Mapping):
            continue
        child_type = child.get("type")
        if child_type == "text":
            inline.append(str(child.get("text") or ""))
        elif child_type == "hardBreak":
            inline.append("\n")
        elif child_type == "horizontalRule":
            flush()
        else:
            flush()
            blocks.extend(_render_blocks(child))
    flush()

    if node.get("type") == "listItem" and blocks:
        blocks[0] = f"{_LIST_ITEM_PREFIX}{blocks[0]}"
    return blocks


def tree_to_text(tree: Mapping[str, Any]) -> str:
    return _BLOCK_SEPARATOR.join(_render_blocks(tree))


def markup_to_text(markup: str) -> str:
    """Strip every tag from a markup string and collapse whitespace.

    Parsed with the pure-python ``html.parser`` backend; nothing in the
    markup is fetched or executed, and script/style bodies are dropped.
    """
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "iframe", "object", "embed"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return _WHITESPACE.sub(" ", text).strip()


def _parse_json_tree(text: str) -> Mapping[str, Any] | None:
    stripped = text.strip()
    if not stripped.startswith("{"):
        return None
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return None
    return parsed if isinstance(parsed, Mapping) else None


def to_plain_text(content: Any) -> str:
    """Convert a document tree, serialized tree, or markup string to plain text."""
    if content is None:
        return ""
    if isinstance(content, Mapping):
        return tree_to_text(content)
    if isinstance(content, list):
        return tree_to_text({"type": "doc", "content": content})
    if isinstance(content, str):
        tree = _parse_json_tree(content)
        if tree is not None:
            return tree_to_text(tree)
        return markup_to_text(content)
    return markup_to_text(str(content))
