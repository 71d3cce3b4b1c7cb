"""Tests for the JSON codec."""

import json

import pytest

from kpitree.codec.errors import FormatError
from kpitree.codec.json_codec import deserialize, serialize
from kpitree.tree.KPINode import KPINode, NodeCategory, Position
from kpitree.tree.relations import NodeRelationship


class TestSerialize:
    def test_top_level_is_array(self, forest):
        data = json.loads(serialize(forest))
        assert isinstance(data, list)
        assert [d["id"] for d in data] == ["ebitda-root", "esg-summary", "free-cash-flow"]

    def test_two_space_indent(self, forest):
        text = serialize(forest)
        assert text.startswith('[\n  {\n    "id": "ebitda-root"')

    def test_camel_case_and_omitted_fields(self):
        node = KPINode(
            id="n",
            name="Note",
            is_detached=True,
            position=Position(10, 20),
            relationships=[NodeRelationship(id="l", target_id="m")],
        )
        data = json.loads(serialize([node]))[0]
        assert data == {
            "id": "n",
            "name": "Note",
            "isDetached": True,
            "relationships": [{"id": "l", "targetId": "m"}],
            "position": {"x": 10, "y": 20},
        }

    def test_false_and_empty_fields_are_omitted(self):
        data = json.loads(serialize([KPINode(id="n", name="N")]))[0]
        assert data == {"id": "n", "name": "N"}

    def test_non_ascii_is_kept(self, linked_forest):
        assert "← Drives" in serialize(linked_forest)


class TestDeserialize:
    def test_round_trip(self, linked_forest):
        linked_forest[0].markers.append("flag-red")
        linked_forest[2].category = NodeCategory.FCF
        assert deserialize(serialize(linked_forest)) == linked_forest

    def test_rejects_non_array(self):
        with pytest.raises(FormatError, match="expected an array of KPI nodes"):
            deserialize('{"id": "a", "name": "A"}')

    def test_rejects_invalid_json(self):
        with pytest.raises(FormatError, match="Failed to parse JSON file"):
            deserialize("[{")

    def test_rejects_non_object_element(self):
        with pytest.raises(FormatError, match="index 1"):
            deserialize('[{"id": "a", "name": "A"}, 42]')

    def test_rejects_unknown_esg(self):
        with pytest.raises(FormatError, match="index 0"):
            deserialize('[{"id": "a", "name": "A", "esg": "X"}]')

    def test_rejects_missing_id(self):
        with pytest.raises(FormatError):
            deserialize('[{"name": "A"}]')

    def test_empty_array(self):
        assert deserialize("[]") == []

    def test_format_error_is_value_error(self):
        with pytest.raises(ValueError):
            deserialize("{}")
