# schemas/flow_definition.py
from __future__ import annotations
from typing import List, Optional, Dict, Any, Annotated
from enum import Enum
import json
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

# ---------- Core Enums ----------

class NodeKind(str, Enum):
    EXECUTOR = "executor"
    CHOICE = "choice"
    PARALLEL = "parallel"
    FOREACH = "foreach"
    SUBFLOW = "subflow"
    APPROVAL = "approval"
    WAIT_EVENT = "wait_event"
    OTHER = "other"

    @classmethod
    def from_raw(cls, kind: Any) -> "NodeKind":
        """Map a raw `kind` value onto the closed variant set (unknown -> OTHER)."""
        if not isinstance(kind, str):
            return cls.OTHER
        try:
            return cls(kind)
        except ValueError:
            return cls.OTHER

# ---------- Lenient field types ----------

def as_key(value: Any) -> str:
    """Mapping keys and node references are strings; YAML may hand us ints or bools."""
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, (bool, int, float)):
        return json.dumps(value)
    return str(value)


def _reference(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (list, dict)):
        return None
    return as_key(value)


def _reference_map(value: Any) -> Optional[Dict[str, str]]:
    if not isinstance(value, dict):
        return None
    targets = {as_key(label): _reference(target) for label, target in value.items()}
    return {label: target for label, target in targets.items() if target is not None}


def _mapping_or_none(value: Any) -> Any:
    return value if isinstance(value, (dict, BaseModel)) else None


# Node keys, action labels and transition endpoints
Reference = Annotated[Optional[str], BeforeValidator(_reference)]
ReferenceMap = Annotated[Optional[Dict[str, str]], BeforeValidator(_reference_map)]

# ---------- Node Fields ----------

class PostRules(BaseModel):
    """Continuation rules evaluated after a node runs."""
    model_config = ConfigDict(extra="allow")

    action_static: Reference = None
    action_map: ReferenceMap = None
    action_key: Any = None
    output_key: Any = None
    output_map: Any = None

class ChoiceCase(BaseModel):
    model_config = ConfigDict(extra="allow")

    action: Reference = None
    expr: Any = None
    cond_eq: Optional[Any] = None
    cond_gt: Optional[Any] = None

class NodeSpec(BaseModel):
    """
    One entry of a definition's `nodes` mapping.

    Unknown fields are kept so the renderer can show kind-specific
    detail without going back to the source text. Only the fields that
    shape the graph are typed; a malformed one is dropped instead of
    rejecting the node.
    """
    model_config = ConfigDict(extra="allow")

    kind: Any = None
    service: Any = None
    exec_type: Any = None
    func: Any = None
    params: Any = None
    post: Optional[PostRules] = None
    choice_cases: Optional[List[ChoiceCase]] = None
    default_action: Reference = None
    subflow: Optional[FlowDefinition] = None

    # Fan-out / iteration metadata
    parallel_mode: Any = None
    max_parallel: Any = None
    parallel_services: Any = None
    parallel_execs: Any = None
    foreach_execs: Any = None
    flow_id: Any = None

    @field_validator("post", "subflow", mode="before")
    @classmethod
    def _mapping_fields(cls, value):
        return _mapping_or_none(value)

    @field_validator("choice_cases", mode="before")
    @classmethod
    def _case_list(cls, value):
        if not isinstance(value, list):
            return None
        return [case for case in value if isinstance(case, (dict, BaseModel))]

    @property
    def node_kind(self) -> NodeKind:
        return NodeKind.from_raw(self.kind)

    def to_payload(self) -> Dict[str, Any]:
        """Original fields only, as they appeared in the definition."""
        payload = self.model_dump(exclude_unset=True, by_alias=True, mode="json")
        for key, value in (self.model_extra or {}).items():
            payload.setdefault(key, value)
        return payload

# ---------- Definition ----------

class TransitionSpec(BaseModel):
    """An edge entry; a missing endpoint leaves it unresolved rather than invalid."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source: Reference = Field(default=None, alias="from")
    target: Reference = Field(default=None, alias="to")
    action: Reference = None

class FlowDefinition(BaseModel):
    """A scope: the root flow or the body of an embedded subflow."""
    model_config = ConfigDict(extra="allow")

    start: Reference = None
    nodes: Dict[str, NodeSpec] = Field(default_factory=dict)
    edges: Optional[List[TransitionSpec]] = None

    @field_validator("nodes", mode="before")
    @classmethod
    def _null_nodes(cls, value):
        if value is None:
            return {}
        if isinstance(value, dict):
            return {as_key(key): (spec if spec is not None else {}) for key, spec in value.items()}
        return value

    @field_validator("edges", mode="before")
    @classmethod
    def _edge_entries(cls, value):
        if isinstance(value, list):
            return [entry for entry in value if isinstance(entry, (dict, BaseModel))]
        return value

NodeSpec.model_rebuild()
