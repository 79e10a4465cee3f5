# schemas/flow_graph.py
from __future__ import annotations
from typing import List, Optional, Tuple
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from schemas.flow_definition import NodeSpec

# ---------- Core Enums ----------

class GraphNodeType(str, Enum):
    NORMAL = "normal"
    GROUP = "group"

# ---------- Geometry ----------

class Position(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = 0
    y: float = 0

class Size(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: float
    height: float

# ---------- Graph Models ----------

class GraphNode(BaseModel):
    id: str
    type: GraphNodeType = Field(default=GraphNodeType.NORMAL)
    parent_id: Optional[str] = None
    label: str
    payload: NodeSpec = Field(default_factory=NodeSpec)
    is_start: bool = False

    # Set by the layout engine
    position: Position = Field(default_factory=Position)
    size: Optional[Size] = None

    @property
    def is_group(self) -> bool:
        return self.type == GraphNodeType.GROUP

class GraphEdge(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    target: str
    label: Optional[str] = None

class ScopeResult(BaseModel):
    """Result of expanding one scope. Lives for a single expansion pass."""
    model_config = ConfigDict(frozen=True)

    nodes: Tuple[GraphNode, ...] = ()
    edges: Tuple[GraphEdge, ...] = ()
    entry_id: Optional[str] = None
    exit_ids: Tuple[str, ...] = ()

class FlowGraph(BaseModel):
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    entry_id: Optional[str] = None
    exit_ids: List[str] = Field(default_factory=list)

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return next((n for n in self.nodes if n.id == node_id), None)
