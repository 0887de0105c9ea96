"""
Lattice Explorer
================
Exploration core for the transformation lattice of an anonymization engine.

Given a lattice of candidate generalizations annotated with a privacy
classification and an information loss range, decides:
- which nodes are shown initially, under a node budget (NodeFilter)
- which transformations are bookmarked automatically (Clipboard)
"""

__version__ = "1.0.0"
__author__ = "Lattice Explorer Team"

from .config import Config, ExplorerConfig, DataConfig
from .filter import NodeFilter
from .clipboard import Clipboard, InterestingTransformations, insert_bounded
from .session import ExplorationSession, SessionResult

__all__ = [
    # Config
    "Config", "ExplorerConfig", "DataConfig",
    # Exploration
    "NodeFilter", "Clipboard", "InterestingTransformations", "insert_bounded",
    # Session
    "ExplorationSession", "SessionResult",
]
