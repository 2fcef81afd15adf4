"""Helpers for the expression tree returned by the parser."""
from typing import Any, List, Tuple

import yaml

NEWLINE = ('newline',)


def freeze(node: Any) -> Any:
    """Recursively converts list nodes into tuples."""
    if isinstance(node, (list, tuple)):
        return tuple(freeze(child) for child in node)
    return node


def thaw(node: Any) -> Any:
    """Recursively converts tuple nodes back into lists (e.g. for serialization)."""
    if isinstance(node, (list, tuple)):
        return [thaw(child) for child in node]
    return node


def count_newlines(node: Any) -> int:
    if not isinstance(node, (list, tuple)):
        return 0
    if tuple(node) == NEWLINE:
        return 1
    return sum(count_newlines(child) for child in node)


def find_nodes(node: Any, *kind: str) -> List[Tuple]:
    """Returns every node whose leading elements equal `kind`, depth first."""
    found = []
    if isinstance(node, (list, tuple)):
        if tuple(node[:len(kind)]) == kind:
            found.append(node)
        for child in node:
            found.extend(find_nodes(child, *kind))
    return found


def dump_tree(tree: Any) -> str:
    return yaml.safe_dump(thaw(tree), default_flow_style=None, allow_unicode=True, sort_keys=False)
