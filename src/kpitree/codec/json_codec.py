"""JSON codec - Direct structural dump of a KPI forest.

The file format is the forest itself: a JSON array of node objects with
camelCase keys, pretty-printed on export.
"""

from __future__ import annotations

import json

from kpitree.codec.errors import FormatError
from kpitree.tree.KPINode import KPINode, forest_to_dicts

DEFAULT_INDENT = 2


def serialize(nodes: list[KPINode], indent: int = DEFAULT_INDENT) -> str:
    """Serialize a forest to pretty-printed JSON text.

    Args:
        nodes: The forest to serialize.
        indent: Spaces per indentation level.

    Returns:
        JSON text whose top-level value is an array.
    """
    return json.dumps(forest_to_dicts(nodes), indent=indent, ensure_ascii=False)


def deserialize(text: str) -> list[KPINode]:
    """Parse JSON text into a forest.

    Args:
        text: JSON document whose top-level value must be an array.

    Returns:
        The decoded forest.

    Raises:
        FormatError: If the text is not JSON, the top-level value is not
            an array, or an element cannot be read as a node.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError("Failed to parse JSON file") from e

    if not isinstance(data, list):
        raise FormatError("Invalid JSON format: expected an array of KPI nodes")

    nodes: list[KPINode] = []
    for index, item in enumerate(data):
        try:
            nodes.append(KPINode.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            raise FormatError(f"Invalid KPI node at index {index}: {e}") from e
    return nodes


__all__ = ["DEFAULT_INDENT", "deserialize", "serialize"]
