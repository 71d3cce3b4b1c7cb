"""XMind codec - Convert KPI forests to and from XMind Zen containers.

An XMind Zen file is a zip archive holding three JSON members:
- content.json: list of sheets, each with one root topic and an
  optional flat list of relationships
- metadata.json: creator information
- manifest.json: file-entry listing

Topics nest through two groupings: "attached" children form the normal
tree and "detached" children are floating topics with positions. Units
have no field of their own in this format; they are folded into the
topic title as ``"Name (unit)"`` and split back out on import.
"""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from kpitree.codec.errors import FormatError, UnsupportedFormatError
from kpitree.tree.KPINode import KPINode, Position, build_node_index, iter_forest
from kpitree.tree.markers import SUMMARY_MARKER
from kpitree.tree.relations import REVERSE_SUFFIX, NodeRelationship, reverse_label

logger = logging.getLogger(__name__)

CONTENT_MEMBER = "content.json"
METADATA_MEMBER = "metadata.json"
MANIFEST_MEMBER = "manifest.json"
LEGACY_CONTENT_MEMBER = "content.xml"

PLACEHOLDER_ROOT_TITLE = "Root"
UNTITLED = "Untitled"

# "Revenue ($)" -> ("Revenue", "$")
_UNIT_TITLE = re.compile(r"^(.+?)\s*\(([^)]+)\)\s*$")


def _texts(value: Any) -> list[str] | None:
    """Read an attributedTitle list into its text runs."""
    if not value:
        return None
    return [str(run.get("text", "")) for run in value if isinstance(run, dict)]


@dataclass
class XMindTopic:
    """A topic record in content.json.

    Attributes:
        id: Topic id (carried over as the KPI node id).
        title: Plain title.
        topic_class: Value of the "class" field.
        attributed_title: Rich-text runs; their joined text wins over title.
        position: Layout coordinate (detached topics).
        structure_class: Layout structure (read and written verbatim).
        markers: Marker ids.
        attached: Normal child topics.
        detached: Floating child topics.
        summary: Summary topics (read only).
    """

    id: str
    title: str = ""
    topic_class: str | None = None
    attributed_title: list[str] | None = None
    position: Position | None = None
    structure_class: str | None = None
    markers: list[str] = field(default_factory=list)
    attached: list[XMindTopic] = field(default_factory=list)
    detached: list[XMindTopic] = field(default_factory=list)
    summary: list[XMindTopic] = field(default_factory=list)

    @property
    def rich_title(self) -> str:
        """The richest available title representation."""
        if self.attributed_title:
            return "".join(self.attributed_title)
        return self.title or UNTITLED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> XMindTopic:
        children = data.get("children") or {}
        position = data.get("position")
        summary = list(data.get("summary") or []) + list(children.get("summary") or [])
        return cls(
            id=str(data.get("id") or uuid4().hex),
            title=str(data.get("title") or ""),
            topic_class=data.get("class"),
            attributed_title=_texts(data.get("attributedTitle")),
            position=Position.from_dict(position) if position else None,
            structure_class=data.get("structureClass"),
            markers=[m["markerId"] for m in data.get("markers") or [] if "markerId" in m],
            attached=[cls.from_dict(t) for t in children.get("attached") or []],
            detached=[cls.from_dict(t) for t in children.get("detached") or []],
            summary=[cls.from_dict(t) for t in summary],
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id}
        if self.topic_class:
            result["class"] = self.topic_class
        result["title"] = self.title
        if self.attributed_title:
            result["attributedTitle"] = [{"text": t} for t in self.attributed_title]
        if self.position is not None:
            result["position"] = self.position.to_dict()
        if self.structure_class:
            result["structureClass"] = self.structure_class
        if self.markers:
            result["markers"] = [{"markerId": m} for m in self.markers]
        children: dict[str, Any] = {}
        if self.attached:
            children["attached"] = [t.to_dict() for t in self.attached]
        if self.detached:
            children["detached"] = [t.to_dict() for t in self.detached]
        if children:
            result["children"] = children
        return result


@dataclass
class XMindRelationship:
    """A relationship record in content.json (end1 -> end2)."""

    id: str
    end1_id: str
    end2_id: str
    title: str | None = None
    attributed_title: list[str] | None = None

    @property
    def label(self) -> str | None:
        if self.attributed_title:
            return "".join(self.attributed_title)
        return self.title

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> XMindRelationship:
        return cls(
            id=str(data.get("id") or uuid4().hex),
            end1_id=str(data.get("end1Id", "")),
            end2_id=str(data.get("end2Id", "")),
            title=data.get("title"),
            attributed_title=_texts(data.get("attributedTitle")),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "end1Id": self.end1_id, "end2Id": self.end2_id}
        if self.title is not None:
            result["title"] = self.title
        if self.attributed_title:
            result["attributedTitle"] = [{"text": t} for t in self.attributed_title]
        return result


@dataclass
class XMindSheet:
    """A sheet: one root topic plus its relationships."""

    id: str
    title: str
    root_topic: XMindTopic | None
    relationships: list[XMindRelationship] = field(default_factory=list)
    sheet_class: str = "sheet"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> XMindSheet:
        root = data.get("rootTopic")
        return cls(
            id=str(data.get("id") or uuid4().hex),
            title=str(data.get("title") or ""),
            root_topic=XMindTopic.from_dict(root) if root else None,
            relationships=[XMindRelationship.from_dict(r) for r in data.get("relationships") or []],
            sheet_class=data.get("class") or "sheet",
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "class": self.sheet_class, "title": self.title}
        if self.root_topic is not None:
            result["rootTopic"] = self.root_topic.to_dict()
        if self.relationships:
            result["relationships"] = [r.to_dict() for r in self.relationships]
        return result


@dataclass
class XMindImport:
    """Result of decoding a container.

    Attributes:
        nodes: The imported forest.
        dropped_relationships: Records whose endpoints were not found.
    """

    nodes: list[KPINode]
    dropped_relationships: list[XMindRelationship] = field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# Export
# ─────────────────────────────────────────────────────────────────────────────


def join_title(name: str, unit: str | None) -> str:
    """Fold a unit into a topic title."""
    return f"{name} ({unit})" if unit else name


def node_to_topic(node: KPINode) -> XMindTopic:
    """Convert a node and its subtree into a topic."""
    title = join_title(node.name, node.unit)
    return XMindTopic(
        id=node.id,
        title=title,
        topic_class="importantTopic" if node.is_detached else "topic",
        attributed_title=[title],
        position=node.position,
        markers=list(node.markers),
        attached=[node_to_topic(c) for c in node.children if not c.is_detached],
        detached=[node_to_topic(c) for c in node.children if c.is_detached],
    )


def _is_derived_reverse(node: KPINode, rel: NodeRelationship, index: dict[str, KPINode]) -> bool:
    """True if rel is a reverse edge whose label import would re-derive.

    A reverse edge without its forward half also counts; exporting it
    alone would turn it into a forward link.
    """
    target = index.get(rel.target_id)
    if target is None:
        return True
    forward_id = rel.id[: -len(REVERSE_SUFFIX)]
    for forward in target.relationships:
        if forward.id == forward_id and forward.target_id == node.id:
            return rel.label == reverse_label(forward.label)
    return True


def collect_relationships(
    nodes: list[KPINode],
    index: dict[str, KPINode],
    within: set[str] | None = None,
) -> list[XMindRelationship]:
    """Collect relationship records from every node of nodes.

    Reverse edges are skipped when import would synthesize them with the
    same label; a relabeled reverse edge is kept. Links whose target is
    not in the forest are skipped.

    Args:
        nodes: Subtrees to scan.
        index: Every node of the whole forest by id.
        within: When given, both endpoints must be in this set.
    """
    records: list[XMindRelationship] = []
    for node in iter_forest(nodes):
        for rel in node.relationships:
            if rel.target_id not in index:
                continue
            if rel.is_reverse and _is_derived_reverse(node, rel, index):
                continue
            if within is not None and rel.target_id not in within:
                continue
            records.append(
                XMindRelationship(
                    id=rel.id,
                    end1_id=node.id,
                    end2_id=rel.target_id,
                    title=rel.label,
                    attributed_title=[rel.label] if rel.label else None,
                )
            )
    return records


def build_sheets(nodes: list[KPINode]) -> list[XMindSheet]:
    """Lay a forest out as XMind sheets.

    One sheet per attached top-level node. Detached top-level nodes go
    to the first sheet's detached group. The first sheet carries the
    relationships of the entire forest; later sheets only those with
    both endpoints inside their own subtree. A forest with only
    detached nodes gets one sheet with a placeholder root.
    """
    roots = [n for n in nodes if not n.is_detached]
    detached = [n for n in nodes if n.is_detached]
    node_index = build_node_index(nodes)

    sheets: list[XMindSheet] = []
    for index, root in enumerate(roots):
        topic = node_to_topic(root)
        if index == 0:
            topic.detached = topic.detached + [node_to_topic(n) for n in detached]
            relationships = collect_relationships(nodes, node_index)
        else:
            subtree = {n.id for n in root.walk()}
            relationships = collect_relationships([root], node_index, within=subtree)
        sheets.append(
            XMindSheet(
                id=uuid4().hex,
                title=f"Sheet {index + 1}",
                root_topic=topic,
                relationships=relationships,
            )
        )

    if not roots and detached:
        placeholder = XMindTopic(
            id=uuid4().hex,
            title=PLACEHOLDER_ROOT_TITLE,
            topic_class="topic",
            attributed_title=[PLACEHOLDER_ROOT_TITLE],
            detached=[node_to_topic(n) for n in detached],
        )
        sheets.append(
            XMindSheet(
                id=uuid4().hex,
                title="Sheet 1",
                root_topic=placeholder,
                relationships=collect_relationships(nodes, node_index),
            )
        )

    return sheets


def encode_xmind(
    nodes: list[KPINode],
    creator_name: str = "KPI Tree Dashboard",
    creator_version: str = "1.0.0",
) -> bytes:
    """Encode a forest as an XMind Zen zip archive.

    Returns:
        The archive bytes.
    """
    sheets = build_sheets(nodes)
    metadata = {"creator": {"name": creator_name, "version": creator_version}}
    manifest = {"file-entries": {CONTENT_MEMBER: {}, METADATA_MEMBER: {}}}

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(CONTENT_MEMBER, json.dumps([s.to_dict() for s in sheets]))
        archive.writestr(METADATA_MEMBER, json.dumps(metadata))
        archive.writestr(MANIFEST_MEMBER, json.dumps(manifest))
    return buffer.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# Import
# ─────────────────────────────────────────────────────────────────────────────


def split_title(title: str) -> tuple[str, str | None]:
    """Split ``"Name (unit)"`` into name and unit."""
    match = _UNIT_TITLE.match(title)
    if match and match.group(1) and match.group(2):
        return match.group(1).strip(), match.group(2).strip()
    return title, None


def topic_to_node(topic: XMindTopic, is_detached: bool = False) -> KPINode:
    """Convert a topic and its attached/summary children into a node.

    Detached children of the topic are not converted here; only a
    sheet's root topic contributes detached nodes (see sheets_to_nodes).
    """
    name, unit = split_title(topic.rich_title)
    node = KPINode(
        id=topic.id,
        name=name,
        unit=unit,
        is_detached=is_detached,
        position=topic.position,
        markers=list(topic.markers),
    )
    node.children = [topic_to_node(child) for child in topic.attached]
    for summary_topic in topic.summary:
        summary_node = topic_to_node(summary_topic)
        summary_node.markers = [*summary_node.markers, SUMMARY_MARKER]
        node.children.append(summary_node)
    return node


def apply_relationships(
    nodes: list[KPINode], records: list[XMindRelationship]
) -> list[XMindRelationship]:
    """Attach relationship records to the nodes they connect.

    Each resolved record adds a forward edge on its end1 node and, unless
    the end2 node already links back, a synthesized reverse edge. Reverse
    records are applied last and relabel the edge synthesized for them.

    Returns:
        Records dropped because an endpoint is not in the forest.
    """
    index = build_node_index(nodes)
    dropped: list[XMindRelationship] = []
    for record in sorted(records, key=lambda r: r.id.endswith(REVERSE_SUFFIX)):
        source = index.get(record.end1_id)
        target = index.get(record.end2_id)
        if source is None or target is None:
            dropped.append(record)
            continue

        existing = [
            rel
            for rel in source.relationships
            if rel.id == record.id and rel.target_id == record.end2_id
        ]
        if existing:
            existing[0].label = record.label
            continue

        forward = NodeRelationship(id=record.id, target_id=record.end2_id, label=record.label)
        source.relationships.append(forward)
        if not target.has_link_to(record.end1_id):
            target.relationships.append(forward.reversed(record.end1_id))
    return dropped


def sheets_to_nodes(sheets: list[XMindSheet]) -> XMindImport:
    """Convert parsed sheets into a forest.

    Each root topic becomes a top-level node; the root's detached topics
    become top-level nodes flagged as detached. Relationship records of
    all sheets are pooled, a record repeated on several sheets counting
    once, and resolved against every imported node.
    """
    nodes: list[KPINode] = []
    pooled: dict[tuple[str, str, str], XMindRelationship] = {}

    for sheet in sheets:
        if sheet.root_topic is not None:
            nodes.append(topic_to_node(sheet.root_topic))
            for detached in sheet.root_topic.detached:
                nodes.append(topic_to_node(detached, is_detached=True))
        for record in sheet.relationships:
            pooled.setdefault((record.id, record.end1_id, record.end2_id), record)

    dropped = apply_relationships(nodes, list(pooled.values()))
    if dropped:
        logger.warning("Dropped %d relationship(s) with unknown endpoints", len(dropped))
    return XMindImport(nodes=nodes, dropped_relationships=dropped)


def decode_xmind(data: bytes) -> XMindImport:
    """Decode an XMind Zen archive into a forest.

    Raises:
        UnsupportedFormatError: If the archive is a legacy XML container.
        FormatError: If the archive is corrupt or has no content member.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise FormatError("Invalid XMind file: not a zip archive") from e

    with archive:
        members = set(archive.namelist())
        if CONTENT_MEMBER not in members:
            if LEGACY_CONTENT_MEMBER in members:
                raise UnsupportedFormatError(
                    "Legacy XMind XML format is not supported. "
                    "Please use XMind Zen (.xmind) files."
                )
            raise FormatError("Invalid XMind file: could not find content.json or content.xml")
        try:
            raw = json.loads(archive.read(CONTENT_MEMBER).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError, zipfile.BadZipFile) as e:
            raise FormatError(f"Invalid XMind file: unreadable {CONTENT_MEMBER}") from e

    if not isinstance(raw, list):
        raise FormatError(f"Invalid XMind file: {CONTENT_MEMBER} must hold a list of sheets")
    try:
        sheets = [XMindSheet.from_dict(sheet) for sheet in raw]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise FormatError(f"Invalid XMind file: malformed sheet ({e})") from e
    return sheets_to_nodes(sheets)


__all__ = [
    "XMindImport",
    "XMindRelationship",
    "XMindSheet",
    "XMindTopic",
    "build_sheets",
    "collect_relationships",
    "decode_xmind",
    "encode_xmind",
    "join_title",
    "node_to_topic",
    "sheets_to_nodes",
    "split_title",
    "topic_to_node",
]
