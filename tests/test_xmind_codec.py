"""Tests for the XMind Zen codec."""

import io
import json
import zipfile

import pytest

from kpitree.codec.errors import FormatError, UnsupportedFormatError
from kpitree.codec.xmind import (
    XMindSheet,
    build_sheets,
    decode_xmind,
    encode_xmind,
    sheets_to_nodes,
    split_title,
)
from kpitree.tree.KPINode import KPINode, Position, build_node_index
from kpitree.tree.markers import SUMMARY_MARKER
from kpitree.tree.relations import NodeRelationship, get_all_relationships
from kpitree.tree.store import TreeStore


def _archive(members: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in members.items():
            archive.writestr(name, content if isinstance(content, str) else json.dumps(content))
    return buffer.getvalue()


def _members(data: bytes) -> dict:
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return {name: json.loads(archive.read(name)) for name in archive.namelist()}


# ─────────────────────────────────────────────────────────────────────────────
# Export
# ─────────────────────────────────────────────────────────────────────────────


class TestEncode:
    def test_archive_members(self, forest):
        members = _members(encode_xmind(forest, creator_name="Tester", creator_version="9"))
        assert set(members) == {"content.json", "metadata.json", "manifest.json"}
        assert members["metadata.json"] == {"creator": {"name": "Tester", "version": "9"}}
        assert members["manifest.json"] == {
            "file-entries": {"content.json": {}, "metadata.json": {}}
        }

    def test_one_sheet_per_root(self, forest):
        sheets = _members(encode_xmind(forest))["content.json"]
        assert [s["title"] for s in sheets] == ["Sheet 1", "Sheet 2", "Sheet 3"]
        assert sheets[0]["class"] == "sheet"
        root = sheets[0]["rootTopic"]
        assert root["id"] == "ebitda-root"
        assert root["class"] == "topic"
        assert root["title"] == "EBITDA ($M)"
        assert root["attributedTitle"] == [{"text": "EBITDA ($M)"}]

    def test_sheet_ids_are_unique(self, forest):
        sheets = build_sheets(forest)
        assert len({s.id for s in sheets}) == len(sheets)

    def test_first_sheet_carries_all_relationships(self, linked_forest):
        sheets = build_sheets(linked_forest)
        assert [(r.end1_id, r.end2_id, r.title) for r in sheets[0].relationships] == [
            ("fuel-cost", "ghg-total", "Drives")
        ]
        # fuel-cost lives outside the second sheet's subtree
        assert sheets[1].relationships == []

    def test_later_sheet_keeps_internal_relationships(self, forest):
        ghg, safety = forest[1].children
        ghg.relationships.append(NodeRelationship(id="l-int", target_id=safety.id))
        sheets = build_sheets(forest)
        assert [r.id for r in sheets[0].relationships] == ["l-int"]
        assert [r.id for r in sheets[1].relationships] == ["l-int"]

    def test_reverse_and_dangling_edges_are_not_exported(self, linked_forest):
        linked_forest[2].relationships.append(NodeRelationship(id="l-gone", target_id="gone"))
        ids = [r.id for r in build_sheets(linked_forest)[0].relationships]
        assert ids == ["link-fuel-ghg"]

    def test_relabeled_reverse_edge_is_exported(self, linked_forest):
        ghg = linked_forest[1].children[0]
        ghg.relationships[0].label = "Fed by"
        records = build_sheets(linked_forest)[0].relationships
        assert [(r.id, r.end1_id, r.title) for r in records] == [
            ("link-fuel-ghg", "fuel-cost", "Drives"),
            ("link-fuel-ghg-reverse", "ghg-total", "Fed by"),
        ]

    def test_detached_nodes_join_first_sheet(self, forest):
        forest.append(KPINode(id="note", name="Note", is_detached=True, position=Position(5, 6)))
        sheets = _members(encode_xmind(forest))["content.json"]
        assert len(sheets) == 3
        detached = sheets[0]["rootTopic"]["children"]["detached"]
        assert detached[0]["id"] == "note"
        assert detached[0]["class"] == "importantTopic"
        assert detached[0]["position"] == {"x": 5, "y": 6}

    def test_detached_only_forest_gets_placeholder_root(self):
        nodes = [KPINode(id="note", name="Note", is_detached=True)]
        sheets = build_sheets(nodes)
        assert len(sheets) == 1
        assert sheets[0].root_topic.title == "Root"
        assert [t.id for t in sheets[0].root_topic.detached] == ["note"]

    def test_empty_forest(self):
        assert build_sheets([]) == []


# ─────────────────────────────────────────────────────────────────────────────
# Import
# ─────────────────────────────────────────────────────────────────────────────


class TestDecode:
    def test_unit_round_trip(self):
        """A unit folded into the title comes back as name and unit."""
        nodes = decode_xmind(encode_xmind([KPINode(id="a", name="Revenue", unit="$")])).nodes
        assert nodes[0].id == "a"
        assert nodes[0].name == "Revenue"
        assert nodes[0].unit == "$"

    def test_round_trip_keeps_structure(self, forest):
        nodes = decode_xmind(encode_xmind(forest)).nodes
        assert [n.id for n in nodes] == ["ebitda-root", "esg-summary", "free-cash-flow"]
        index = build_node_index(nodes)
        assert len(index) == 13
        assert index["ghg-total"].unit == "tCO2e"
        assert [c.id for c in index["cash-cost"].children] == ["emp-cost", "fuel-cost"]

    def test_round_trip_relationships_listed_once(self, linked_forest):
        nodes = decode_xmind(encode_xmind(linked_forest)).nodes
        index = build_node_index(nodes)
        assert [(r.id, r.label) for r in index["fuel-cost"].relationships] == [
            ("link-fuel-ghg", "Drives")
        ]
        assert [(r.id, r.label) for r in index["ghg-total"].relationships] == [
            ("link-fuel-ghg-reverse", "← Drives")
        ]
        views = get_all_relationships(nodes)
        assert [(v.source.id, v.target.id) for v in views] == [("fuel-cost", "ghg-total")]

    def test_records_repeated_across_sheets_are_deduplicated(self, forest):
        ghg, safety = forest[1].children
        ghg.relationships.append(NodeRelationship(id="l-int", target_id=safety.id))
        nodes = decode_xmind(encode_xmind(forest)).nodes
        index = build_node_index(nodes)
        assert [r.id for r in index["ghg-total"].relationships] == ["l-int"]
        assert [r.id for r in index["safety-incidents"].relationships] == ["l-int-reverse"]

    def test_duplicated_linked_node_keeps_both_links(self, linked_forest):
        store = TreeStore(linked_forest)
        clone_id = store.duplicate_node("fuel-cost")
        nodes = decode_xmind(encode_xmind(store.nodes)).nodes
        index = build_node_index(nodes)
        assert [r.target_id for r in index["fuel-cost"].relationships] == ["ghg-total"]
        assert [r.target_id for r in index[clone_id].relationships] == ["ghg-total"]
        assert [r.target_id for r in index["ghg-total"].relationships] == ["fuel-cost", clone_id]
        views = get_all_relationships(nodes)
        assert [(v.source.id, v.target.id) for v in views] == [
            ("fuel-cost", "ghg-total"),
            (clone_id, "ghg-total"),
        ]

    def test_relabeled_reverse_edge_round_trip(self, linked_forest):
        store = TreeStore(linked_forest)
        assert store.update_link_label("ghg-total", "fuel-cost", "Fed by")
        nodes = decode_xmind(encode_xmind(store.nodes)).nodes
        index = build_node_index(nodes)
        assert [(r.id, r.label) for r in index["fuel-cost"].relationships] == [
            ("link-fuel-ghg", "Drives")
        ]
        assert [(r.id, r.label) for r in index["ghg-total"].relationships] == [
            ("link-fuel-ghg-reverse", "Fed by")
        ]

    def test_records_sharing_an_id_with_different_ends(self):
        content = [
            {
                "id": "s1",
                "rootTopic": {
                    "id": "r",
                    "title": "R",
                    "children": {
                        "attached": [{"id": "a", "title": "A"}, {"id": "b", "title": "B"}]
                    },
                },
                "relationships": [
                    {"id": "l1", "end1Id": "a", "end2Id": "r"},
                    {"id": "l1", "end1Id": "b", "end2Id": "r"},
                ],
            }
        ]
        nodes = decode_xmind(_archive({"content.json": content})).nodes
        a, b = nodes[0].children
        assert [r.target_id for r in a.relationships] == ["r"]
        assert [r.target_id for r in b.relationships] == ["r"]
        assert [r.target_id for r in nodes[0].relationships] == ["a", "b"]

    def test_detached_topics_become_top_level(self, forest):
        forest.append(KPINode(id="note", name="Note", is_detached=True, position=Position(5, 6)))
        nodes = decode_xmind(encode_xmind(forest)).nodes
        note = [n for n in nodes if n.id == "note"][0]
        assert note.is_detached
        assert note.position == Position(5, 6)
        assert nodes.index(note) == 1

    def test_markers_round_trip(self, forest):
        forest[2].markers = ["flag-red", "priority-2"]
        nodes = decode_xmind(encode_xmind(forest)).nodes
        assert nodes[2].markers == ["flag-red", "priority-2"]

    def test_attributed_title_wins(self):
        content = [
            {
                "id": "s1",
                "title": "Sheet 1",
                "rootTopic": {
                    "id": "r",
                    "title": "plain",
                    "attributedTitle": [{"text": "Rich "}, {"text": "Title (t)"}],
                },
            }
        ]
        nodes = decode_xmind(_archive({"content.json": content})).nodes
        assert nodes[0].name == "Rich Title"
        assert nodes[0].unit == "t"

    def test_missing_title_is_untitled(self):
        content = [{"id": "s1", "rootTopic": {"id": "r"}}]
        nodes = decode_xmind(_archive({"content.json": content})).nodes
        assert nodes[0].name == "Untitled"

    def test_summary_topics_become_marked_children(self):
        content = [
            {
                "id": "s1",
                "rootTopic": {
                    "id": "r",
                    "title": "Root",
                    "children": {
                        "attached": [{"id": "a", "title": "A"}],
                        "summary": [{"id": "sum", "title": "Total"}],
                    },
                },
            }
        ]
        nodes = decode_xmind(_archive({"content.json": content})).nodes
        assert [c.id for c in nodes[0].children] == ["a", "sum"]
        assert nodes[0].children[1].markers == [SUMMARY_MARKER]

    def test_relationships_resolve_across_sheets(self):
        content = [
            {"id": "s1", "rootTopic": {"id": "a", "title": "A"}},
            {
                "id": "s2",
                "rootTopic": {"id": "b", "title": "B"},
                "relationships": [{"id": "l1", "end1Id": "b", "end2Id": "a", "title": "uses"}],
            },
        ]
        result = decode_xmind(_archive({"content.json": content}))
        assert [r.target_id for r in result.nodes[1].relationships] == ["a"]
        assert result.dropped_relationships == []

    def test_unresolved_relationships_are_reported(self):
        content = [
            {
                "id": "s1",
                "rootTopic": {"id": "a", "title": "A"},
                "relationships": [{"id": "l1", "end1Id": "a", "end2Id": "missing"}],
            }
        ]
        result = decode_xmind(_archive({"content.json": content}))
        assert result.nodes[0].relationships == []
        assert [r.id for r in result.dropped_relationships] == ["l1"]

    def test_sheets_to_nodes_accepts_typed_sheets(self):
        sheet = XMindSheet.from_dict({"id": "s", "rootTopic": {"id": "r", "title": "R (%)"}})
        nodes = sheets_to_nodes([sheet]).nodes
        assert (nodes[0].name, nodes[0].unit) == ("R", "%")


class TestDecodeErrors:
    def test_legacy_xml_is_unsupported(self):
        data = _archive({"content.xml": "<xmap-content/>"})
        with pytest.raises(UnsupportedFormatError, match="Legacy XMind XML format"):
            decode_xmind(data)

    def test_unsupported_format_is_a_format_error(self):
        assert issubclass(UnsupportedFormatError, FormatError)

    def test_missing_content(self):
        data = _archive({"metadata.json": {}})
        with pytest.raises(FormatError, match="could not find content.json or content.xml"):
            decode_xmind(data)

    def test_not_a_zip(self):
        with pytest.raises(FormatError, match="not a zip archive"):
            decode_xmind(b"definitely not a zip")

    def test_content_not_a_list(self):
        with pytest.raises(FormatError):
            decode_xmind(_archive({"content.json": {"sheets": []}}))

    def test_content_not_json(self):
        with pytest.raises(FormatError):
            decode_xmind(_archive({"content.json": "{not json"}))


class TestSplitTitle:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Revenue ($)", ("Revenue", "$")),
            ("Plain", ("Plain", None)),
            ("Cost (a) (b)", ("Cost (a)", "b")),
            ("Strip Ratio (bcm/t) ", ("Strip Ratio", "bcm/t")),
        ],
    )
    def test_split(self, title, expected):
        assert split_title(title) == expected


class TestTitleFolding:
    def test_parenthesized_name_is_read_back_as_unit(self, forest):
        """Names ending in parentheses are indistinguishable from a folded unit."""
        nodes = decode_xmind(encode_xmind(forest)).nodes
        production = nodes[0].children[0]
        assert (production.name, production.unit) == ("Production", "Revenue")
