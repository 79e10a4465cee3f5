"""
Expansion Engine

Flattens a nested flow definition into graph nodes and edges.
Embedded subflows become group nodes whose children carry qualified
ids (`parent_child`), and every scope reports a single entry point and
its set of exit points so that edges into or out of a subflow attach
to the right inner nodes.
"""

from typing import Dict, List, Optional, Set, Tuple
from dataclasses import dataclass
import logging

from schemas.flow_definition import FlowDefinition, NodeKind, NodeSpec, TransitionSpec
from schemas.flow_graph import FlowGraph, GraphEdge, GraphNode, GraphNodeType, ScopeResult
from services.edge_inference import infer_transitions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryPoints:
    """Where edges attach to a local key: one way in, one or more ways out."""
    entry_id: str
    exit_ids: Tuple[str, ...]


def qualify(prefix: str, key: str) -> str:
    return f"{prefix}_{key}" if prefix else key


def edge_id(source: str, target: str, label: Optional[str]) -> str:
    return f"{source}-{target}-{label or 'default'}"


def claim_id(candidate: str, taken: Set[str]) -> str:
    """Reserve `candidate`, or `candidate_2`, `candidate_3`... when it is already used."""
    claimed = candidate
    counter = 2
    while claimed in taken:
        claimed = f"{candidate}_{counter}"
        counter += 1
    taken.add(claimed)
    return claimed


class ExpansionEngine:
    """
    Recursive definition expander.

    Each call to `expand` builds fresh collections and returns an
    immutable ScopeResult. The only state shared down the recursion is
    the set of node ids already emitted, so that qualified ids stay
    unique across scopes (a root key `s_x` next to subflow `s` holding
    `x`).
    """

    def expand(
        self,
        definition: FlowDefinition,
        prefix: str = "",
        parent_id: Optional[str] = None,
        taken_ids: Optional[Set[str]] = None,
    ) -> ScopeResult:
        taken = set() if taken_ids is None else taken_ids
        nodes: List[GraphNode] = []
        edges: List[GraphEdge] = []
        points: Dict[str, EntryPoints] = {}

        for key, spec in definition.nodes.items():
            candidate = qualify(prefix, key)
            qualified_id = claim_id(candidate, taken)
            if qualified_id != candidate:
                logger.warning(f"Node id {candidate} is already in use, emitting {key} as {qualified_id}")

            if self._is_embedded_subflow(spec):
                nodes.append(GraphNode(
                    id=qualified_id,
                    type=GraphNodeType.GROUP,
                    parent_id=parent_id,
                    label=f"Subflow: {key}",
                    payload=spec,
                ))

                sub_result = self.expand(spec.subflow, prefix=qualified_id, parent_id=qualified_id, taken_ids=taken)
                nodes.extend(sub_result.nodes)
                edges.extend(sub_result.edges)

                points[key] = EntryPoints(
                    entry_id=sub_result.entry_id or qualified_id,
                    exit_ids=sub_result.exit_ids or (qualified_id,),
                )
            else:
                nodes.append(GraphNode(
                    id=qualified_id,
                    type=GraphNodeType.NORMAL,
                    parent_id=parent_id,
                    label=key,
                    payload=spec,
                ))
                points[key] = EntryPoints(entry_id=qualified_id, exit_ids=(qualified_id,))

        scope_edges, keys_with_outgoing = self._resolve_transitions(infer_transitions(definition), points)
        edges = self._unique_edge_ids(edges + scope_edges)

        exit_ids: List[str] = []
        for key in definition.nodes:
            if key not in keys_with_outgoing:
                exit_ids.extend(points[key].exit_ids)

        entry_id = None
        if definition.start and definition.start in points:
            entry_id = points[definition.start].entry_id

        return ScopeResult(
            nodes=tuple(nodes),
            edges=tuple(edges),
            entry_id=entry_id,
            exit_ids=tuple(exit_ids),
        )

    def _resolve_transitions(
        self,
        transitions: List[TransitionSpec],
        points: Dict[str, EntryPoints],
    ) -> Tuple[List[GraphEdge], Set[str]]:
        """Fan each transition out from every exit of its source; drop dangling ones."""
        edges: List[GraphEdge] = []
        seen: Set[Tuple[str, str, Optional[str]]] = set()
        keys_with_outgoing: Set[str] = set()

        for transition in transitions:
            source = points.get(transition.source)
            target = points.get(transition.target)
            if source is None or target is None:
                logger.debug(f"Ignoring dangling transition {transition.source} -> {transition.target}")
                continue

            keys_with_outgoing.add(transition.source)
            for exit_id in source.exit_ids:
                triple = (exit_id, target.entry_id, transition.action)
                if triple in seen:
                    continue
                seen.add(triple)
                edges.append(GraphEdge(
                    id=edge_id(*triple),
                    source=exit_id,
                    target=target.entry_id,
                    label=transition.action,
                ))

        return edges, keys_with_outgoing

    def _unique_edge_ids(self, edges: List[GraphEdge]) -> List[GraphEdge]:
        """Distinct edges can format to the same id when keys contain '-'; suffix the later ones."""
        taken: Set[str] = set()
        unique: List[GraphEdge] = []
        for edge in edges:
            new_id = claim_id(edge.id, taken)
            unique.append(edge if new_id == edge.id else edge.model_copy(update={"id": new_id}))
        return unique

    def _is_embedded_subflow(self, spec: NodeSpec) -> bool:
        return spec.node_kind == NodeKind.SUBFLOW and spec.subflow is not None

    def expand_definition(self, definition: FlowDefinition) -> FlowGraph:
        """Expand from the root scope and flag the root entry node as the start."""
        result = self.expand(definition)
        nodes = list(result.nodes)

        if result.entry_id:
            for i, node in enumerate(nodes):
                if node.id == result.entry_id:
                    nodes[i] = node.model_copy(update={"is_start": True})
                    break

        logger.debug(f"Expanded definition into {len(nodes)} nodes and {len(result.edges)} edges")
        return FlowGraph(
            nodes=nodes,
            edges=list(result.edges),
            entry_id=result.entry_id,
            exit_ids=list(result.exit_ids),
        )

    def expand_flat(self, definition: FlowDefinition) -> FlowGraph:
        """
        Single-scope view: subflow nodes stay collapsed as normal nodes.
        """
        flat = definition.model_copy(update={
            "nodes": {
                key: spec.model_copy(update={"subflow": None}) if self._is_embedded_subflow(spec) else spec
                for key, spec in definition.nodes.items()
            }
        })
        graph = self.expand_definition(flat)

        # Keep the original payloads so collapsed subflows still show their detail
        for node in graph.nodes:
            node.payload = definition.nodes[node.id]
        return graph
