"""Plain-text extraction for rich text editor state."""

from collections.abc import Mapping
from typing import Any

# Node types rendered as standalone blocks (separated by a newline).
_BLOCK_NODES = frozenset(
    {"paragraph", "heading", "quote", "listitem", "list", "code", "table", "tablerow", "block"}
)
_INLINE_BREAKS = {"linebreak": "\n", "tab": "\t"}


def _node_text(node: Mapping[str, Any]) -> str:
    node_type = node.get("type")

    if node_type == "text":
        text = node.get("text")
        return text if isinstance(text, str) else ""
    if node_type in _INLINE_BREAKS:
        return _INLINE_BREAKS[node_type]

    children = node.get("children")
    if not isinstance(children, list):
        return ""

    parts = [_node_text(child) for child in children if isinstance(child, Mapping)]
    if any(
        isinstance(child, Mapping) and child.get("type") in _BLOCK_NODES for child in children
    ):
        return "\n".join(part for part in parts if part)
    return "".join(parts)


def richtext_to_plaintext(value: Any) -> str:
    """Flatten a serialized editor state (``{"root": {"children": [...]}}``) to text.

    Plain strings are returned unchanged; unknown shapes yield an empty string.
    """
    if isinstance(value, str):
        return value
    if not isinstance(value, Mapping):
        return ""

    root = value.get("root", value)
    if not isinstance(root, Mapping):
        return ""
    return _node_text(root).strip()
