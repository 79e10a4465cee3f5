import pytest

from schemas.flow_definition import FlowDefinition, NodeSpec
from services.expansion_engine import ExpansionEngine
from translators.reactflow_translator import ReactFlowTranslator


def _translate(document, layout_algorithm="hierarchical"):
    graph = ExpansionEngine().expand_definition(FlowDefinition.model_validate(document))
    return ReactFlowTranslator().translate(graph, layout_algorithm)


def _nodes_by_id(result):
    return {n["id"]: n for n in result["nodes"]}


def test_translates_nodes_groups_and_edges(linear_subflow_definition) -> None:
    result = _translate(linear_subflow_definition)
    nodes = _nodes_by_id(result)

    assert nodes["a"]["type"] == "custom"
    assert nodes["a"]["targetPosition"] == "left"
    assert nodes["a"]["sourcePosition"] == "right"
    assert nodes["a"]["data"]["isStart"] is True
    assert nodes["a"]["style"]["borderColor"] == "#1890ff"

    group = nodes["s"]
    assert group["type"] == "group"
    assert group["data"]["label"] == "Subflow: s"
    assert group["style"]["width"] > 0 and group["style"]["height"] > 0
    assert "parentId" not in group

    child = nodes["s_x"]
    assert child["parentId"] == "s"
    assert child["extent"] == "parent"

    assert result["metadata"]["node_count"] == 5
    assert result["metadata"]["edge_count"] == 3
    assert result["metadata"]["entry_id"] == "a"
    assert result["metadata"]["exit_ids"] == ["b"]


def test_edges_are_labelled_only_when_the_transition_is() -> None:
    result = _translate({
        "nodes": {
            "a": {"post": {"action_static": "b", "action_map": {"retry": "a2"}}},
            "b": {},
            "a2": {},
        }
    })
    edges = {e["id"]: e for e in result["edges"]}

    assert "label" not in edges["a-b-default"]
    assert edges["a-a2-retry"]["label"] == "retry"
    assert all(e["type"] == "smoothstep" for e in result["edges"])
    assert all(e["markerEnd"]["type"] == "arrowclosed" for e in result["edges"])


def test_payload_fields_pass_through_to_data() -> None:
    result = _translate({
        "nodes": {
            "run": {"kind": "executor", "exec_type": "local_script", "func": "build", "max_retries": 2}
        }
    })
    data = _nodes_by_id(result)["run"]["data"]

    assert data["kind"] == "executor"
    assert data["max_retries"] == 2
    assert data["nodeKind"] == "executor"
    assert data["details"] == {"service": "local_script:build"}


def test_unknown_kind_has_no_details() -> None:
    data = _nodes_by_id(_translate({"nodes": {"t": {"kind": "timer", "wait_ms": 50}}}))["t"]["data"]

    assert data["nodeKind"] == "other"
    assert data["kind"] == "timer"
    assert data["details"] == {}


def test_manual_layout_keeps_positions() -> None:
    result = _translate({"nodes": {"a": {"post": {"action_static": "b"}}, "b": {}}}, "manual")

    assert all(n["position"] == {"x": 0, "y": 0} for n in result["nodes"])
    assert result["metadata"]["layout_algorithm"] == "manual"


def test_unknown_layout_algorithm_is_rejected() -> None:
    with pytest.raises(ValueError):
        _translate({"nodes": {}}, "force")


def test_empty_graph_translates_to_empty_lists() -> None:
    result = _translate({"nodes": {}})

    assert result["nodes"] == []
    assert result["edges"] == []
    assert result["metadata"]["node_count"] == 0


class TestNodeDetails:
    def setup_method(self):
        self.translator = ReactFlowTranslator()

    def test_choice(self):
        spec = NodeSpec.model_validate({
            "kind": "choice",
            "choice_cases": [{"action": "hi", "cond_gt": 5}, {"action": "lo"}],
            "default_action": "lo",
        })
        assert self.translator.describe_node(spec) == {
            "cases": [{"label": "> 5", "target": "hi"}, {"label": "Case 2", "target": "lo"}],
            "default_action": "lo",
        }

    def test_parallel(self):
        spec = NodeSpec.model_validate({
            "kind": "parallel",
            "parallel_mode": "concurrent",
            "max_parallel": 2,
            "parallel_services": ["resize", "thumbnail"],
            "parallel_execs": [{"exec_type": "local_func", "func": "sum", "params": {"n": 1}}],
        })
        assert self.translator.describe_node(spec) == {
            "parallel_mode": "concurrent",
            "max_parallel": 2,
            "services": ["resize", "thumbnail"],
            "execs": [{"service": "local_func:sum", "params": {"n": 1}}],
        }

    def test_foreach(self):
        spec = NodeSpec.model_validate({
            "kind": "foreach",
            "parallel_mode": "sequential",
            "foreach_execs": [{"index": 1, "params": {"x": 2}}],
        })
        assert self.translator.describe_node(spec) == {
            "parallel_mode": "sequential",
            "overrides": [{"index": 1, "params": {"x": 2}}],
        }

    def test_subflow(self):
        spec = NodeSpec.model_validate({
            "kind": "subflow",
            "flow_id": "billing",
            "subflow": {"nodes": {"a": {}, "b": {}}},
        })
        assert self.translator.describe_node(spec) == {"flow_id": "billing", "child_count": 2}

    def test_wait_event(self):
        spec = NodeSpec.model_validate({"kind": "wait_event", "params": {"signal_key": "paid"}})
        assert self.translator.describe_node(spec) == {"signal_key": "paid"}

    def test_approval(self):
        assert self.translator.describe_node(NodeSpec(kind="approval")) == {}


def test_malformed_detail_fields_do_not_break_translation() -> None:
    translator = ReactFlowTranslator()

    parallel = NodeSpec.model_validate({
        "kind": "parallel",
        "parallel_services": "resize",
        "parallel_execs": ["not-a-mapping", {"service": "thumbnail"}],
    })
    assert translator.describe_node(parallel)["services"] == []
    assert translator.describe_node(parallel)["execs"] == [{"service": "thumbnail", "params": None}]

    waiting = NodeSpec.model_validate({"kind": "wait_event", "params": "signal"})
    assert translator.describe_node(waiting) == {"signal_key": None}

    numeric = NodeSpec.model_validate({"kind": 7})
    assert numeric.node_kind.value == "other"
