"""
Unit tests for the typed filter graph.
"""

import pytest

from app.services.errors import GraphValidationError
from app.services.filter_graph import FilterGraph, FilterNode, escape_value, format_value


class TestValueFormatting:
    """Tests for parameter rendering."""

    def test_format_float_trims_zeros(self):
        """Test floats are rendered without trailing zeros."""
        assert format_value(1.0) == "1"
        assert format_value(0.15) == "0.15"
        assert format_value(4.5) == "4.5"
        assert format_value(14.23333) == "14.233"

    def test_format_zero(self):
        """Test zero and negative zero render as 0."""
        assert format_value(0.0) == "0"
        assert format_value(-0.0) == "0"

    def test_format_bool_and_int(self):
        """Test booleans and ints."""
        assert format_value(True) == "1"
        assert format_value(False) == "0"
        assert format_value(720) == "720"

    def test_plain_expression_not_quoted(self):
        """Test expressions without metacharacters pass through."""
        assert escape_value("(ow-iw)/2") == "(ow-iw)/2"
        assert escape_value("W-w-20") == "W-w-20"

    def test_metacharacters_quoted(self):
        """Test values with filtergraph metacharacters get quoted."""
        assert escape_value("a:b") == "'a:b'"
        assert escape_value("x,y") == "'x,y'"
        assert escape_value("it's") == "'it'\\''s'"


class TestFilterNode:
    """Tests for node serialization."""

    def test_node_with_params(self):
        """Test a two-input node renders pins and params in order."""
        node = FilterNode(
            filter_name="xfade",
            inputs=("v0", "v1"),
            outputs=("vx1",),
            params={"transition": "fade", "duration": 0.5, "offset": 4.5},
        )
        assert node.to_filtergraph() == "[v0][v1]xfade=transition=fade:duration=0.5:offset=4.5[vx1]"

    def test_node_without_params(self):
        """Test a parameterless node."""
        node = FilterNode(filter_name="null", inputs=("0:v",), outputs=("out",))
        assert node.to_filtergraph() == "[0:v]null[out]"


class TestFilterGraph:
    """Tests for graph building and validation."""

    def test_add_input_indexes(self):
        """Test inputs are indexed in registration order."""
        graph = FilterGraph()
        first = graph.add_input("a.mp4")
        second = graph.add_input("b.png", options=["-loop", "1"])
        assert first.video == "0:v"
        assert second.audio == "1:a"
        assert second.options == ("-loop", "1")

    def test_chain_names_intermediate_pins(self):
        """Test linear chains produce output_n intermediates and the final label."""
        graph = FilterGraph()
        clip = graph.add_input("a.mp4")
        out = graph.chain(
            clip.video,
            [("setsar", {"sar": 1}), ("fps", {"fps": 30}), ("setpts", {"expr": "PTS-STARTPTS"})],
            "v0",
            kind="normalize",
        )
        assert out == "v0"
        assert [node.outputs for node in graph.nodes] == [("v0_0",), ("v0_1",), ("v0",)]
        assert graph.nodes[1].inputs == ("v0_0",)
        assert len(graph.nodes_of_kind("normalize")) == 3

    def test_valid_graph(self):
        """Test a correctly wired graph validates and reports unused pins."""
        graph = FilterGraph()
        clip = graph.add_input("a.mp4")
        graph.add("split", [clip.video], ["s1", "s2"])
        graph.add("setpts", ["s1"], ["out"], {"expr": "PTS-STARTPTS"})

        report = graph.validate(["out"])
        assert report.unused_pins == ["s2"]
        assert "out" in report.produced_pins

    def test_consume_before_produce(self):
        """Test consuming a pin before any node produces it fails."""
        graph = FilterGraph()
        graph.add_input("a.mp4")
        graph.add("setpts", ["later"], ["out"], {"expr": "PTS-STARTPTS"})
        graph.add("null", ["0:v"], ["later"])

        with pytest.raises(GraphValidationError, match="before it is produced"):
            graph.validate(["out"])

    def test_duplicate_producer(self):
        """Test two nodes producing the same pin fails."""
        graph = FilterGraph()
        graph.add_input("a.mp4")
        graph.add_input("b.mp4")
        graph.add("null", ["0:v"], ["v"])
        graph.add("null", ["1:v"], ["v"])

        with pytest.raises(GraphValidationError, match="produced twice"):
            graph.validate(["v"])

    def test_double_consumption(self):
        """Test a pin consumed by two nodes fails."""
        graph = FilterGraph()
        graph.add_input("a.mp4")
        graph.add("null", ["0:v"], ["v"])
        graph.add("null", ["v"], ["x"])
        graph.add("null", ["v"], ["y"])

        with pytest.raises(GraphValidationError, match="already consumed"):
            graph.validate(["x", "y"])

    def test_missing_input_file(self):
        """Test referencing an unregistered input fails."""
        graph = FilterGraph()
        graph.add_input("a.mp4")
        graph.add("null", ["3:v"], ["v"])

        with pytest.raises(GraphValidationError, match="missing input"):
            graph.validate(["v"])

    def test_output_pin_never_produced(self):
        """Test mapping an unknown pin fails."""
        graph = FilterGraph()
        graph.add_input("a.mp4")
        graph.add("null", ["0:v"], ["v"])

        with pytest.raises(GraphValidationError, match="never produced"):
            graph.validate(["final"])

    def test_output_pin_also_consumed(self):
        """Test mapping a pin that a filter also consumes fails."""
        graph = FilterGraph()
        graph.add_input("a.mp4")
        graph.add("null", ["0:v"], ["v"])
        graph.add("null", ["v"], ["w"])

        with pytest.raises(GraphValidationError, match="also consumed"):
            graph.validate(["v", "w"])

    def test_invalid_label(self):
        """Test pin labels must be plain identifiers."""
        graph = FilterGraph()
        graph.add_input("a.mp4")
        graph.add("null", ["0:v"], ["bad label"])

        with pytest.raises(GraphValidationError, match="Invalid pin label"):
            graph.validate(["bad label"])

    def test_no_outputs(self):
        """Test a graph without mapped outputs fails."""
        graph = FilterGraph()
        graph.add_input("a.mp4")
        graph.add("null", ["0:v"], ["v"])

        with pytest.raises(GraphValidationError, match="no output"):
            graph.validate([])

    def test_serialize_and_args(self):
        """Test serialization joins nodes and args map outputs."""
        graph = FilterGraph()
        clip = graph.add_input("a.mp4")
        graph.add("volume", [clip.audio], ["final_audio"], {"volume": 1.0})
        graph.add("null", [clip.video], ["final_v"])

        assert graph.serialize() == "[0:a]volume=volume=1[final_audio];[0:v]null[final_v]"
        assert graph.to_args(["final_v", "final_audio"]) == [
            "-i", "a.mp4",
            "-filter_complex", "[0:a]volume=volume=1[final_audio];[0:v]null[final_v]",
            "-map", "[final_v]",
            "-map", "[final_audio]",
        ]
