from schemas.flow_definition import ChoiceCase, FlowDefinition
from services.edge_inference import (
    choice_case_labels,
    describe_condition,
    explicit_transitions,
    implicit_transitions,
    infer_transitions,
    render_expr,
    uses_explicit_edges,
)


def _triples(transitions):
    return [(t.source, t.target, t.action) for t in transitions]


def test_implicit_rules_in_rendering_order() -> None:
    definition = FlowDefinition.model_validate({
        "nodes": {
            "a": {"post": {"action_static": "b", "action_map": {"ok": "c", "err": "d"}}},
            "b": {},
            "c": {},
            "d": {},
        }
    })

    assert _triples(implicit_transitions(definition)) == [
        ("a", "b", None),
        ("a", "c", "ok"),
        ("a", "d", "err"),
    ]


def test_choice_cases_and_default_action() -> None:
    definition = FlowDefinition.model_validate({
        "nodes": {
            "route": {
                "kind": "choice",
                "choice_cases": [
                    {"action": "big", "cond_gt": 100},
                    {"action": "vip", "expr": {"eq": ["$shared.tier", "gold"]}},
                    {"expr": {"eq": ["$shared.skip", True]}},
                    {"action": "other"},
                ],
                "default_action": "fallback",
            },
        }
    })

    assert _triples(implicit_transitions(definition)) == [
        ("route", "big", "> 100"),
        ("route", "vip", "$shared.tier == gold"),
        ("route", "other", "Case 4"),
        ("route", "fallback", "default"),
    ]


def test_choice_cases_on_non_choice_nodes_are_ignored() -> None:
    definition = FlowDefinition.model_validate({
        "nodes": {"a": {"kind": "executor", "choice_cases": [{"action": "b"}], "default_action": "c"}}
    })

    assert implicit_transitions(definition) == []


def test_explicit_edges_take_precedence_over_node_rules() -> None:
    definition = FlowDefinition.model_validate({
        "nodes": {"a": {"post": {"action_static": "c"}}, "b": {}, "c": {}},
        "edges": [{"from": "a", "to": "b", "action": "next"}],
    })

    assert uses_explicit_edges(definition)
    assert _triples(infer_transitions(definition)) == [("a", "b", "next")]


def test_empty_edge_list_still_selects_explicit_strategy() -> None:
    definition = FlowDefinition.model_validate({
        "nodes": {"a": {"post": {"action_static": "b"}}, "b": {}},
        "edges": [],
    })

    assert uses_explicit_edges(definition)
    assert infer_transitions(definition) == []
    assert explicit_transitions(definition) == []


def test_missing_edge_list_selects_implicit_strategy() -> None:
    definition = FlowDefinition.model_validate({"nodes": {"a": {"post": {"action_static": "b"}}, "b": {}}})

    assert not uses_explicit_edges(definition)
    assert _triples(infer_transitions(definition)) == [("a", "b", None)]


def test_node_without_rules_has_no_transitions() -> None:
    definition = FlowDefinition.model_validate({"nodes": {"a": {"kind": "approval"}}})

    assert infer_transitions(definition) == []


def test_describe_condition_shorthands() -> None:
    assert describe_condition(ChoiceCase(action="x", cond_eq="approved"), 0) == "== approved"
    assert describe_condition(ChoiceCase(action="x", cond_gt=10), 0) == "> 10"
    assert describe_condition(ChoiceCase(action="x"), 2) == "Case 3"
    assert describe_condition(ChoiceCase(action="x", expr={}), 0) == "Case 1"


def test_render_expr_comparisons_and_logic() -> None:
    expr = {"and": [{"eq": ["$shared.x", 1]}, {"exists": "$input.y"}]}
    assert render_expr(expr) == "$shared.x == 1 and exists $input.y"

    nested = {
        "or": [
            {"and": [{"ge": ["$params.n", 2]}, {"lt": ["$params.n", 5]}]},
            {"not": {"eq": ["$shared.done", True]}},
        ]
    }
    assert render_expr(nested) == "($params.n >= 2 and $params.n < 5) or not ($shared.done == true)"


def test_render_expr_membership_operators() -> None:
    assert render_expr({"in": ["$input.code", ["a", "b"]]}) == '$input.code in ["a", "b"]'
    assert render_expr({"contains": ["$input.tags", "urgent"]}) == "$input.tags contains urgent"
    assert render_expr({"ne": ["$shared.state", None]}) == "$shared.state != null"


def test_render_expr_ignores_malformed_operands() -> None:
    assert render_expr({"eq": ["only-one"]}) == ""
    assert render_expr("not-a-mapping") == ""


def test_choice_case_labels_keep_evaluation_order() -> None:
    definition = FlowDefinition.model_validate({
        "nodes": {
            "c": {
                "kind": "choice",
                "choice_cases": [{"action": "a", "cond_eq": 1}, {"cond_eq": 2}],
            }
        }
    })

    assert choice_case_labels(definition.nodes["c"]) == [
        {"label": "== 1", "target": "a"},
        {"label": "== 2", "target": None},
    ]
