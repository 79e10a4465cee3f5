"""
Layered Layout Engine

Rank-based (Sugiyama-style) left-to-right layout with cluster support.
Group nodes are sized to enclose their children plus padding, and
nested nodes come out positioned relative to their parent's top-left
corner, which is what React Flow expects for `parentId` children.
"""

from typing import Dict, List, Optional, Set, Tuple
from dataclasses import dataclass, field
import logging

import networkx as nx

from schemas.flow_graph import FlowGraph, GraphEdge, GraphNode, Position, Size
from utils.config import LayoutSettings

logger = logging.getLogger(__name__)

CROSSING_SWEEPS = 4


@dataclass
class LayoutItem:
    """A layout vertex; clusters hold the items nested inside them."""
    id: str
    width: float = 0
    height: float = 0
    children: List["LayoutItem"] = field(default_factory=list)
    is_cluster: bool = False

    # Center relative to the enclosing item's top-left (document origin for roots)
    local_x: float = 0
    local_y: float = 0

    # Document-absolute center
    x: float = 0
    y: float = 0

    @property
    def left(self) -> float:
        return self.x - self.width / 2

    @property
    def top(self) -> float:
        return self.y - self.height / 2


class LayoutEngine:
    """
    Deterministic layered layout.

    Each container (the document root or a group) is ranked and ordered on
    its own, with edges between descendants lifted to the container's
    direct children, so cross-group edges still pull whole groups into
    the right rank.
    """

    def __init__(self, settings: Optional[LayoutSettings] = None):
        self.settings = settings or LayoutSettings()

    def layout(self, graph: FlowGraph) -> FlowGraph:
        return graph.model_copy(update={"nodes": self.layout_nodes(graph.nodes, graph.edges)})

    def layout_nodes(self, nodes: List[GraphNode], edges: List[GraphEdge]) -> List[GraphNode]:
        """Return new nodes with positions (and group sizes) filled in."""
        if not nodes:
            return []

        items, parent_of, roots = self._build_items(nodes)
        width, height = self._layout_container(roots, edges, parent_of)
        self._resolve_absolute(roots, 0, 0)

        positioned = []
        for node in nodes:
            item = items[node.id]
            x, y = item.left, item.top

            parent_id = parent_of.get(node.id)
            if parent_id is not None:
                parent = items[parent_id]
                x, y = x - parent.left, y - parent.top

            update = {"position": Position(x=x, y=y)}
            if node.is_group:
                update["size"] = Size(width=item.width, height=item.height)
            positioned.append(node.model_copy(update=update))

        logger.debug(f"Laid out {len(nodes)} nodes in a {width:.0f}x{height:.0f} canvas")
        return positioned

    # ---------- Tree construction ----------

    def _build_items(
        self, nodes: List[GraphNode]
    ) -> Tuple[Dict[str, LayoutItem], Dict[str, str], List[LayoutItem]]:
        items: Dict[str, LayoutItem] = {}
        for node in nodes:
            items[node.id] = LayoutItem(
                id=node.id,
                width=self.settings.node_width,
                height=self.settings.node_height,
            )

        parent_of: Dict[str, str] = {}
        for node in nodes:
            if node.parent_id and node.parent_id in items and node.parent_id != node.id:
                parent_of[node.id] = node.parent_id

        # A parent chain that loops back on itself cannot be nested; treat those nodes as roots
        for node_id in list(parent_of):
            if self._has_parent_cycle(node_id, parent_of):
                del parent_of[node_id]

        roots: List[LayoutItem] = []
        for node in nodes:
            item = items[node.id]
            parent_id = parent_of.get(node.id)
            if parent_id is None:
                roots.append(item)
            else:
                parent = items[parent_id]
                parent.children.append(item)
                parent.is_cluster = True

        return items, parent_of, roots

    def _has_parent_cycle(self, node_id: str, parent_of: Dict[str, str]) -> bool:
        seen = {node_id}
        current = parent_of.get(node_id)
        while current is not None:
            if current in seen:
                return True
            seen.add(current)
            current = parent_of.get(current)
        return False

    # ---------- Container layout ----------

    def _layout_container(
        self,
        children: List[LayoutItem],
        edges: List[GraphEdge],
        parent_of: Dict[str, str],
    ) -> Tuple[float, float]:
        """Place `children` inside a container; returns the content width and height."""
        if not children:
            return 0, 0

        s = self.settings
        for child in children:
            if child.is_cluster:
                content_w, content_h = self._layout_container(child.children, edges, parent_of)
                child.width = content_w + s.padding_left + s.padding_right
                child.height = content_h + s.padding_top + s.padding_bottom
                for grandchild in child.children:
                    grandchild.local_x += s.padding_left
                    grandchild.local_y += s.padding_top

        graph = self._lifted_graph(children, edges, parent_of)
        ranks = self._assign_ranks(graph)
        layers = self._order_layers(graph, ranks, [c.id for c in children])
        by_id = {c.id: c for c in children}
        return self._assign_coordinates(layers, by_id)

    def _lifted_graph(
        self,
        children: List[LayoutItem],
        edges: List[GraphEdge],
        parent_of: Dict[str, str],
    ) -> nx.DiGraph:
        """Arcs between this container's children, lifted from descendant edges."""
        member_ids = {c.id for c in children}
        graph = nx.DiGraph()
        graph.add_nodes_from(c.id for c in children)

        for edge in edges:
            source = self._lift(edge.source, member_ids, parent_of)
            target = self._lift(edge.target, member_ids, parent_of)
            if source is None or target is None or source == target:
                continue
            graph.add_edge(source, target)

        # Layering needs a DAG; drop one arc per cycle until there are none
        while not nx.is_directed_acyclic_graph(graph):
            cycle = nx.find_cycle(graph)
            graph.remove_edge(*cycle[-1][:2])

        return graph

    def _lift(self, node_id: str, member_ids: Set[str], parent_of: Dict[str, str]) -> Optional[str]:
        current: Optional[str] = node_id
        while current is not None:
            if current in member_ids:
                return current
            current = parent_of.get(current)
        return None

    def _assign_ranks(self, graph: nx.DiGraph) -> Dict[str, int]:
        """Longest-path ranking, with sources pulled up next to their first successor."""
        order = {node_id: i for i, node_id in enumerate(graph.nodes)}
        ranks: Dict[str, int] = {}
        for node_id in nx.lexicographical_topological_sort(graph, key=order.get):
            predecessors = list(graph.predecessors(node_id))
            ranks[node_id] = max((ranks[p] + 1 for p in predecessors), default=0)

        for node_id in graph.nodes:
            if graph.in_degree(node_id) == 0 and graph.out_degree(node_id) > 0:
                ranks[node_id] = min(ranks[s] for s in graph.successors(node_id)) - 1

        return ranks

    def _order_layers(self, graph: nx.DiGraph, ranks: Dict[str, int], input_order: List[str]) -> List[List[str]]:
        """Group by rank and reduce crossings with barycenter sweeps."""
        layer_count = max(ranks.values()) + 1
        layers: List[List[str]] = [[] for _ in range(layer_count)]
        for node_id in input_order:
            layers[ranks[node_id]].append(node_id)

        best = [list(layer) for layer in layers]
        best_crossings = self._count_crossings(graph, best)

        for sweep in range(CROSSING_SWEEPS):
            if best_crossings == 0:
                break
            downward = sweep % 2 == 0
            indices = range(1, layer_count) if downward else range(layer_count - 2, -1, -1)
            for r in indices:
                layers[r] = self._sort_by_barycenter(graph, layers, r, downward)

            crossings = self._count_crossings(graph, layers)
            if crossings < best_crossings:
                best = [list(layer) for layer in layers]
                best_crossings = crossings

        return best

    def _sort_by_barycenter(self, graph: nx.DiGraph, layers: List[List[str]], r: int, downward: bool) -> List[str]:
        slot = {node_id: i for layer in layers for i, node_id in enumerate(layer)}

        def barycenter(item: Tuple[int, str]) -> Tuple[float, int]:
            index, node_id = item
            neighbours = list(graph.predecessors(node_id) if downward else graph.successors(node_id))
            if not neighbours:
                return (float(index), index)
            return (sum(slot[n] for n in neighbours) / len(neighbours), index)

        return [node_id for _, node_id in sorted(enumerate(layers[r]), key=barycenter)]

    def _count_crossings(self, graph: nx.DiGraph, layers: List[List[str]]) -> int:
        rank_of = {node_id: r for r, layer in enumerate(layers) for node_id in layer}
        slot = {node_id: i for layer in layers for i, node_id in enumerate(layer)}

        crossings = 0
        for r in range(len(layers) - 1):
            arcs = [
                (slot[u], slot[v])
                for u in layers[r]
                for v in graph.successors(u)
                if rank_of[v] == r + 1
            ]
            for i, (a1, b1) in enumerate(arcs):
                for a2, b2 in arcs[i + 1:]:
                    if (a1 - a2) * (b1 - b2) < 0:
                        crossings += 1
        return crossings

    def _assign_coordinates(self, layers: List[List[str]], by_id: Dict[str, LayoutItem]) -> Tuple[float, float]:
        """Ranks become columns; each column is stacked vertically and centered."""
        s = self.settings
        column_heights = []
        for layer in layers:
            heights = [by_id[n].height for n in layer]
            column_heights.append(sum(heights) + s.node_separation * max(len(layer) - 1, 0))
        total_height = max(column_heights, default=0)

        cursor_x = 0.0
        for layer, column_height in zip(layers, column_heights):
            if not layer:
                continue
            column_width = max(by_id[n].width for n in layer)
            cursor_y = (total_height - column_height) / 2
            for node_id in layer:
                item = by_id[node_id]
                item.local_x = cursor_x + column_width / 2
                item.local_y = cursor_y + item.height / 2
                cursor_y += item.height + s.node_separation
            cursor_x += column_width + s.rank_separation

        total_width = max(cursor_x - s.rank_separation, 0)
        return total_width, total_height

    def _resolve_absolute(self, items: List[LayoutItem], origin_x: float, origin_y: float) -> None:
        for item in items:
            item.x = origin_x + item.local_x
            item.y = origin_y + item.local_y
            if item.children:
                self._resolve_absolute(item.children, item.left, item.top)
