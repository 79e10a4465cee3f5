"""
Flow Visualizer

Runs the full definition -> graph pass (parse, expand, lay out, translate)
and holds the graph currently on display. When definitions arrive faster
than passes complete, only the most recently started pass is applied.
"""

from typing import Any, Dict, List, Optional
import asyncio
import logging

from services.definition_parser import parse_definition
from services.expansion_engine import ExpansionEngine
from translators.reactflow_translator import ReactFlowTranslator

logger = logging.getLogger(__name__)


def render_definition(
    text: str,
    syntax: Optional[str] = None,
    layout_algorithm: str = "hierarchical",
    translator: Optional[ReactFlowTranslator] = None,
    expand_subflows: bool = True,
) -> Dict[str, Any]:
    """Parse, expand and lay out a definition; malformed text gives an empty graph."""
    translator = translator or ReactFlowTranslator()
    engine = ExpansionEngine()

    definition = parse_definition(text, syntax)
    if expand_subflows:
        graph = engine.expand_definition(definition)
    else:
        graph = engine.expand_flat(definition)
    return translator.translate(graph, layout_algorithm)


class FlowVisualizer:
    """
    Holds the displayed graph for one view.

    Every `load` builds a brand-new node/edge list; the displayed lists are
    swapped in one assignment, never patched in place.
    """

    def __init__(self, translator: Optional[ReactFlowTranslator] = None, layout_algorithm: str = "hierarchical"):
        self.translator = translator or ReactFlowTranslator()
        self.layout_algorithm = layout_algorithm
        self.engine = ExpansionEngine()

        self.nodes: List[Dict[str, Any]] = []
        self.edges: List[Dict[str, Any]] = []
        self._generation = 0

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    async def load(self, text: str, syntax: Optional[str] = None) -> bool:
        """
        Render `text` and display it unless a newer load started meanwhile.

        Returns:
            True if this pass's result was applied
        """
        self._generation += 1
        generation = self._generation

        if not text:
            result = {"nodes": [], "edges": []}
        else:
            result = await self._render(text, syntax)

        if generation != self._generation:
            logger.debug(f"Discarding stale render pass {generation} (latest is {self._generation})")
            return False

        self.nodes, self.edges = result["nodes"], result["edges"]
        logger.info(f"Displaying flow graph: {self.node_count} nodes, {self.edge_count} edges")
        return True

    async def _render(self, text: str, syntax: Optional[str]) -> Dict[str, Any]:
        definition = parse_definition(text, syntax)
        # Yield between stages so a newer definition can start its own pass
        await asyncio.sleep(0)
        graph = self.engine.expand_definition(definition)
        await asyncio.sleep(0)
        return self.translator.translate(graph, self.layout_algorithm)
