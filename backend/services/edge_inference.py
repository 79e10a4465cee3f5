"""
Edge Inference

Derives the transitions of one scope. Two strategies produce the same
output type:

- explicit: the scope's own `edges` list
- implicit: continuation rules carried by each node (`post.action_static`,
  `post.action_map`, choice cases and the choice default action)

A scope with an `edges` key uses the explicit strategy only, even when
its nodes also carry continuation rules.
"""

from typing import Any, Dict, List, Optional
import json

from schemas.flow_definition import ChoiceCase, FlowDefinition, NodeKind, NodeSpec, TransitionSpec

COMPARISON_SYMBOLS = {
    "eq": "==",
    "ne": "!=",
    "gt": ">",
    "lt": "<",
    "ge": ">=",
    "le": "<=",
}


def uses_explicit_edges(definition: FlowDefinition) -> bool:
    return definition.edges is not None


def explicit_transitions(definition: FlowDefinition) -> List[TransitionSpec]:
    return list(definition.edges or [])


def node_transitions(key: str, node: NodeSpec) -> List[TransitionSpec]:
    """Transitions implied by a single node's own fields, in rendering order."""
    transitions: List[TransitionSpec] = []

    if node.post:
        if node.post.action_static:
            transitions.append(TransitionSpec(source=key, target=node.post.action_static))
        for label, target in (node.post.action_map or {}).items():
            transitions.append(TransitionSpec(source=key, target=target, action=label))

    if node.node_kind == NodeKind.CHOICE:
        for index, case in enumerate(node.choice_cases or []):
            if case.action:
                transitions.append(
                    TransitionSpec(source=key, target=case.action, action=describe_condition(case, index))
                )
        if node.default_action:
            transitions.append(TransitionSpec(source=key, target=node.default_action, action="default"))

    return transitions


def implicit_transitions(definition: FlowDefinition) -> List[TransitionSpec]:
    transitions: List[TransitionSpec] = []
    for key, node in definition.nodes.items():
        transitions.extend(node_transitions(key, node))
    return transitions


def infer_transitions(definition: FlowDefinition) -> List[TransitionSpec]:
    """Select the strategy for this scope and return its transitions."""
    if uses_explicit_edges(definition):
        return explicit_transitions(definition)
    return implicit_transitions(definition)


# ---------- Condition labels ----------

def describe_condition(case: ChoiceCase, index: int) -> str:
    """Human-readable label for a choice case."""
    if case.cond_eq is not None:
        return f"== {_format_operand(case.cond_eq)}"
    if case.cond_gt is not None:
        return f"> {_format_operand(case.cond_gt)}"
    if case.expr:
        rendered = render_expr(case.expr)
        if rendered:
            return rendered
    return f"Case {index + 1}"


def render_expr(expr: Any, nested: bool = False) -> str:
    """
    Render a condition expression tree as infix text.

    `{"and": [{"eq": ["$shared.x", 1]}, {"exists": "$input.y"}]}`
    becomes `$shared.x == 1 and exists $input.y`.
    """
    if not isinstance(expr, dict) or not expr:
        return ""

    parts = [_render_operator(op, value, nested) for op, value in expr.items()]
    parts = [p for p in parts if p]
    if len(parts) > 1:
        text = " and ".join(parts)
        return f"({text})" if nested else text
    return parts[0] if parts else ""


def _render_operator(op: str, value: Any, nested: bool) -> str:
    if op in ("and", "or"):
        if not isinstance(value, list):
            return ""
        rendered = [render_expr(item, nested=True) for item in value]
        rendered = [r for r in rendered if r]
        text = f" {op} ".join(rendered)
        if nested and len(rendered) > 1:
            return f"({text})"
        return text

    if op == "not":
        inner = render_expr(value, nested=True)
        return f"not ({inner})" if inner else ""

    if op in COMPARISON_SYMBOLS:
        pair = _operand_pair(value)
        if pair is None:
            return ""
        left, right = pair
        return f"{left} {COMPARISON_SYMBOLS[op]} {right}"

    if op == "exists":
        return f"exists {_format_operand(value)}"

    if op in ("in", "contains"):
        pair = _operand_pair(value)
        if pair is None:
            return ""
        left, right = pair
        return f"{left} {op} {right}"

    return f"{op} {_format_operand(value)}"


def _operand_pair(value: Any) -> Optional[List[str]]:
    if isinstance(value, list) and len(value) == 2:
        return [_format_operand(value[0]), _format_operand(value[1])]
    return None


def _format_operand(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def choice_case_labels(node: NodeSpec) -> List[Dict[str, Optional[str]]]:
    """Condition label and target of every choice case, in evaluation order."""
    return [
        {"label": describe_condition(case, index), "target": case.action}
        for index, case in enumerate(node.choice_cases or [])
    ]
