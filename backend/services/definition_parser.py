"""
Definition Parser

Turns raw flow definition text (JSON or YAML) into a FlowDefinition.
Malformed input never raises. Unreadable text, or a document whose
structure is wrong (`nodes` not a mapping, `edges` not a list), is
discarded and an empty definition is returned so downstream stages
always have a value. Field-level problems inside a node only drop
that field.
"""

from typing import Any, Optional
import json
import logging
import re

import yaml
from pydantic import ValidationError

from schemas.flow_definition import FlowDefinition

logger = logging.getLogger(__name__)

SUPPORTED_SYNTAXES = ("json", "yaml")


def empty_definition() -> FlowDefinition:
    return FlowDefinition(nodes={})


def _load_json(text: str) -> Any:
    return json.loads(text)


class DefinitionLoader(yaml.SafeLoader):
    """
    SafeLoader with YAML 1.2 booleans: only true/false are bools, so keys
    like `yes` and `no` stay strings exactly as they would in JSON.
    """


DefinitionLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
DefinitionLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def _load_yaml(text: str) -> Any:
    return yaml.load(text, Loader=DefinitionLoader)


def _load_document(text: str, syntax: Optional[str]) -> Any:
    if syntax == "json":
        return _load_json(text)
    if syntax == "yaml":
        return _load_yaml(text)

    # Auto-detect: JSON is a subset of YAML, but json gives stricter errors
    try:
        return _load_json(text)
    except json.JSONDecodeError:
        return _load_yaml(text)


def parse_definition(text: str, syntax: Optional[str] = None) -> FlowDefinition:
    """
    Parse a flow definition document.

    Args:
        text: Raw definition text
        syntax: "json", "yaml" or None to auto-detect

    Returns:
        FlowDefinition (empty when the text is blank or malformed)
    """
    if not isinstance(text, str):
        raise TypeError(f"Definition text must be str, got {type(text).__name__}")
    if syntax is not None and syntax not in SUPPORTED_SYNTAXES:
        raise ValueError(f"Unsupported definition syntax: {syntax}")

    if not text.strip():
        return empty_definition()

    try:
        document = _load_document(text, syntax)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        logger.warning(f"Discarding malformed flow definition: {e}")
        return empty_definition()

    if not isinstance(document, dict):
        logger.warning(f"Discarding flow definition: expected a mapping, got {type(document).__name__}")
        return empty_definition()

    try:
        return FlowDefinition.model_validate(document)
    except ValidationError as e:
        logger.warning(f"Discarding flow definition with invalid structure: {e.error_count()} error(s)")
        return empty_definition()
