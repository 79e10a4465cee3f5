import json

import pytest


@pytest.fixture
def linear_subflow_definition():
    """Root a -> subflow s (x -> y) -> b."""
    return {
        "start": "a",
        "nodes": {
            "a": {"kind": "executor", "service": "fetch", "post": {"action_static": "s"}},
            "s": {
                "kind": "subflow",
                "post": {"action_static": "b"},
                "subflow": {
                    "start": "x",
                    "nodes": {
                        "x": {"post": {"action_static": "y"}},
                        "y": {},
                    },
                },
            },
            "b": {"kind": "approval"},
        },
    }


@pytest.fixture
def linear_subflow_json(linear_subflow_definition):
    return json.dumps(linear_subflow_definition)
