"""
Deterministic Translator Layer

Lays out an expanded flow graph and converts it to ReactFlow format.
All rendering logic is deterministic and free of I/O.
"""

from .layout_engine import LayoutEngine
from .reactflow_translator import ReactFlowTranslator

__all__ = ['LayoutEngine', 'ReactFlowTranslator']
