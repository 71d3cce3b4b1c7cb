"""File-level import/export entry points.

Picks the codec from the file extension and derives the display name
of an imported forest from the file name (extension stripped).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from kpitree.codec.errors import FormatError
from kpitree.codec.json_codec import DEFAULT_INDENT, deserialize, serialize
from kpitree.codec.xmind import decode_xmind, encode_xmind
from kpitree.tree.KPINode import KPINode

JSON_SUFFIX = ".json"
XMIND_SUFFIX = ".xmind"
SUPPORTED_SUFFIXES = (JSON_SUFFIX, XMIND_SUFFIX)


@dataclass
class ImportResult:
    """A decoded forest ready to become a workspace tab.

    Attributes:
        name: Display name derived from the source file name.
        nodes: The decoded forest.
        warnings: Non-fatal findings (e.g. dropped relationships).
    """

    name: str
    nodes: list[KPINode]
    warnings: list[str] = field(default_factory=list)


def display_name(filename: str) -> str:
    """File name with its extension stripped ("q3.xmind" -> "q3")."""
    name = Path(filename).name
    stem, dot, _ = name.rpartition(".")
    return stem if dot and stem else name


def _format_of(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise FormatError(
            f"Unsupported file type '{suffix or filename}'; expected .json or .xmind"
        )
    return suffix


def import_bytes(data: bytes, filename: str) -> ImportResult:
    """Decode file content, choosing the codec from filename's extension.

    Raises:
        FormatError: For unsupported extensions or undecodable content.
    """
    suffix = _format_of(filename)
    name = display_name(filename)
    if suffix == JSON_SUFFIX:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError("Failed to read file") from e
        return ImportResult(name=name, nodes=deserialize(text))

    decoded = decode_xmind(data)
    warnings = [
        f"Dropped relationship {r.id}: {r.end1_id} -> {r.end2_id} (endpoint not found)"
        for r in decoded.dropped_relationships
    ]
    return ImportResult(name=name, nodes=decoded.nodes, warnings=warnings)


def import_file(path: Path | str) -> ImportResult:
    """Read and decode a .json or .xmind file.

    Raises:
        FormatError: For unsupported or undecodable files.
        OSError: If the file cannot be read.
    """
    path = Path(path)
    return import_bytes(path.read_bytes(), path.name)


def export_bytes(
    nodes: list[KPINode], filename: str, config: dict[str, Any] | None = None
) -> bytes:
    """Encode a forest in the format named by filename's extension."""
    config = config or {}
    suffix = _format_of(filename)
    if suffix == JSON_SUFFIX:
        indent = config.get("json", {}).get("indent", DEFAULT_INDENT)
        return serialize(nodes, indent=indent).encode("utf-8")

    xmind_config = config.get("xmind", {})
    return encode_xmind(
        nodes,
        creator_name=xmind_config.get("creator_name", "KPI Tree Dashboard"),
        creator_version=xmind_config.get("creator_version", "1.0.0"),
    )


def export_file(
    nodes: list[KPINode], path: Path | str, config: dict[str, Any] | None = None
) -> Path:
    """Write a forest to a .json or .xmind file.

    The content is fully encoded before the file is opened, so a format
    failure never leaves a truncated file behind.
    """
    path = Path(path)
    data = export_bytes(nodes, path.name, config)
    path.write_bytes(data)
    return path


__all__ = [
    "SUPPORTED_SUFFIXES",
    "ImportResult",
    "display_name",
    "export_bytes",
    "export_file",
    "import_bytes",
    "import_file",
]
