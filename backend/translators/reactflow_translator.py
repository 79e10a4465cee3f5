"""
React Flow Translator

Converts an expanded FlowGraph to React Flow JSON format.
Layout, styling and per-kind node detail are handled here deterministically.
"""

from typing import Dict, Any, List, Optional

from schemas.flow_definition import NodeKind, NodeSpec
from schemas.flow_graph import FlowGraph, GraphEdge, GraphNode
from services.edge_inference import choice_case_labels
from translators.layout_engine import LayoutEngine
from utils.config import LayoutSettings

LAYOUT_ALGORITHMS = ("hierarchical", "manual")


class ReactFlowTranslator:
    """
    Deterministic translator from FlowGraph to React Flow format.
    Handles layout, styling, and UI-specific transformations.
    """

    def __init__(self, settings: Optional[LayoutSettings] = None):
        self.settings = settings or LayoutSettings()
        self.layout_engine = LayoutEngine(self.settings)

        self.start_style = {
            "background": "#e6f7ff",
            "borderColor": "#1890ff",
            "borderWidth": "2px"
        }

        # Edge styling
        self.edge_style = {
            "strokeWidth": 2,
            "stroke": "#333"
        }

        self.marker_end = {
            "type": "arrowclosed",
            "color": "#333"
        }

        self.detail_builders = {
            NodeKind.EXECUTOR: self._executor_details,
            NodeKind.CHOICE: self._choice_details,
            NodeKind.PARALLEL: self._parallel_details,
            NodeKind.FOREACH: self._foreach_details,
            NodeKind.SUBFLOW: self._subflow_details,
            NodeKind.WAIT_EVENT: self._wait_event_details,
        }

    def translate(self, graph: FlowGraph, layout_algorithm: str = "hierarchical") -> Dict[str, Any]:
        """
        Convert FlowGraph to React Flow format.

        Args:
            graph: Expanded flow graph
            layout_algorithm: "hierarchical" or "manual" (keep existing positions)

        Returns:
            Dict containing nodes, edges and metadata in React Flow format
        """
        if layout_algorithm not in LAYOUT_ALGORITHMS:
            raise ValueError(f"Unknown layout algorithm: {layout_algorithm}")

        if layout_algorithm == "hierarchical":
            graph = self.layout_engine.layout(graph)

        react_nodes = [self._convert_node(node) for node in graph.nodes]
        react_edges = [self._convert_edge(edge) for edge in graph.edges]

        return {
            "nodes": react_nodes,
            "edges": react_edges,
            "metadata": {
                "node_count": len(react_nodes),
                "edge_count": len(react_edges),
                "entry_id": graph.entry_id,
                "exit_ids": list(graph.exit_ids),
                "layout_algorithm": layout_algorithm
            }
        }

    def _convert_node(self, node: GraphNode) -> Dict[str, Any]:
        """Convert GraphNode to React Flow node format"""
        kind = node.payload.node_kind

        react_node = {
            "id": node.id,
            "type": "group" if node.is_group else "custom",
            "position": {"x": node.position.x, "y": node.position.y},
            "data": {
                **node.payload.to_payload(),
                "label": node.label,
                "nodeKind": kind.value,
                "isStart": node.is_start,
                "details": self.describe_node(node.payload)
            }
        }

        if node.parent_id:
            react_node["parentId"] = node.parent_id
            react_node["extent"] = "parent"

        if node.is_group:
            react_node["style"] = {}
            if node.size:
                react_node["style"] = {"width": node.size.width, "height": node.size.height}
        else:
            react_node["targetPosition"] = "left"
            react_node["sourcePosition"] = "right"
            if node.is_start:
                react_node["style"] = self.start_style.copy()

        return react_node

    def _convert_edge(self, edge: GraphEdge) -> Dict[str, Any]:
        """Convert GraphEdge to React Flow edge format"""
        react_edge = {
            "id": edge.id,
            "source": edge.source,
            "target": edge.target,
            "type": "smoothstep",
            "animated": False,
            "style": self.edge_style.copy(),
            "markerEnd": self.marker_end.copy()
        }

        if edge.label:
            react_edge["label"] = edge.label

        return react_edge

    # ---------- Per-kind node detail ----------

    def describe_node(self, spec: NodeSpec) -> Dict[str, Any]:
        """Kind-specific detail for the node card; approval and unknown kinds have none."""
        builder = self.detail_builders.get(spec.node_kind)
        if builder is None:
            return {}
        return builder(spec)

    def _service_label(self, fields: Dict[str, Any]) -> Optional[str]:
        """`service`, or `exec_type:func` for locally executed nodes."""
        if fields.get("service"):
            return fields["service"]
        exec_type = fields.get("exec_type")
        func = fields.get("func")
        if exec_type:
            return f"{exec_type}:{func}" if func else exec_type
        return None

    def _executor_details(self, spec: NodeSpec) -> Dict[str, Any]:
        return {"service": self._service_label(spec.to_payload())}

    def _choice_details(self, spec: NodeSpec) -> Dict[str, Any]:
        return {
            "cases": choice_case_labels(spec),
            "default_action": spec.default_action
        }

    def _parallel_details(self, spec: NodeSpec) -> Dict[str, Any]:
        services = spec.parallel_services if isinstance(spec.parallel_services, list) else []
        return {
            "parallel_mode": spec.parallel_mode,
            "max_parallel": spec.max_parallel,
            "services": list(services),
            "execs": [
                {"service": self._service_label(e), "params": e.get("params")}
                for e in _mappings(spec.parallel_execs)
            ]
        }

    def _foreach_details(self, spec: NodeSpec) -> Dict[str, Any]:
        return {
            "parallel_mode": spec.parallel_mode,
            "overrides": [
                {"index": e.get("index"), "params": e.get("params")}
                for e in _mappings(spec.foreach_execs)
            ]
        }

    def _subflow_details(self, spec: NodeSpec) -> Dict[str, Any]:
        return {
            "flow_id": spec.flow_id,
            "child_count": len(spec.subflow.nodes) if spec.subflow else 0
        }

    def _wait_event_details(self, spec: NodeSpec) -> Dict[str, Any]:
        params = spec.params if isinstance(spec.params, dict) else {}
        return {"signal_key": params.get("signal_key")}


def _mappings(value: Any) -> List[Dict[str, Any]]:
    """Mapping entries of a list field; anything else contributes nothing."""
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]
