"""
Run Params Extraction

Collects `$params.<name>` references from raw definition text so the
run-task form can be pre-filled with every parameter the flow reads.
"""

from typing import Dict
import json
import re

PARAM_REFERENCE = re.compile(r"\$params\.([a-zA-Z0-9_]+)")


def extract_params(definition: str) -> Dict[str, str]:
    """
    Find every parameter referenced by the definition.

    Args:
        definition: Raw definition text (any syntax)

    Returns:
        Dict of parameter name -> "" in first-appearance order
    """
    if not definition:
        return {}

    params: Dict[str, str] = {}
    for match in PARAM_REFERENCE.finditer(definition):
        params.setdefault(match.group(1), "")
    return params


def extract_params_json(definition: str) -> str:
    params = extract_params(definition)
    if not params:
        return "{}"
    return json.dumps(params, indent=2)
