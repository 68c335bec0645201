"""Shared utilities for language modules."""

from __future__ import annotations

import tree_sitter


def node_text(node: tree_sitter.Node) -> str:
    """Safely get the text of a tree-sitter node."""
    text = node.text
    if text is None:
        return ""
    return text.decode("utf-8")


def named_children(node: tree_sitter.Node) -> list[tree_sitter.Node]:
    """Named children of *node*, without comments."""
    return [c for c in node.named_children if c.type != "comment"]


def compact_text(node: tree_sitter.Node) -> str:
    """Node text with runs of whitespace collapsed, for textual comparison."""
    return " ".join(node_text(node).split())


def position(node: tree_sitter.Node) -> tuple[int, int]:
    """1-based (line, column) of the start of *node*."""
    row, col = node.start_point
    return row + 1, col + 1


def first_error(node: tree_sitter.Node) -> tree_sitter.Node | None:
    """Return the first ERROR or MISSING node below *node*, in source order."""
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = first_error(child)
        if found is not None:
            return found
    return node
