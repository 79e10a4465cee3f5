"""
Layout configuration

Spacing and footprint constants for the layered layout. Defaults match
the canvas the frontend renders into; each can be overridden from the
environment (or a .env file loaded by the app).
"""
import os
from typing import Optional
import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class LayoutSettings(BaseModel):
    rank_separation: float = Field(default=60, ge=0)
    node_separation: float = Field(default=60, ge=0)
    node_width: float = Field(default=220, gt=0)
    node_height: float = Field(default=100, gt=0)

    # Group padding, top is larger to leave room for the group label
    padding_left: float = 20
    padding_right: float = 20
    padding_top: float = 30
    padding_bottom: float = 20

    @classmethod
    def from_env(cls) -> "LayoutSettings":
        """Build settings from FLOW_* environment variables, falling back to defaults."""
        overrides = {}
        for field_name, env_name in (
            ("rank_separation", "FLOW_LAYOUT_RANKSEP"),
            ("node_separation", "FLOW_LAYOUT_NODESEP"),
            ("node_width", "FLOW_NODE_WIDTH"),
            ("node_height", "FLOW_NODE_HEIGHT"),
        ):
            value = _env_float(env_name)
            if value is not None:
                overrides[field_name] = value
        return cls(**overrides)


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number")
        return None
