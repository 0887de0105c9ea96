"""
Exploration Session Orchestration.

This module coordinates the exploration workflow:
1. Read the node table produced by the anonymization engine
2. Initialize the node filter for a default view under the node budget
3. Bookmark interesting transformations on the clipboard
4. Write the visible view and the clipboard
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.clipboard import Clipboard, InterestingTransformations
from core.config import Config
from core.filter import NodeFilter
from schema.lattice import Node, SearchResult


logger = logging.getLogger(__name__)


SNAPSHOT_VERSION = 1


@dataclass
class SessionResult:
    """Result of a session run."""
    success: bool
    total_nodes: int = 0
    visible_nodes: int = 0
    clipboard_entries: int = 0
    result_available: bool = False
    output_files: List[str] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    errors: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "total_nodes": self.total_nodes,
            "visible_nodes": self.visible_nodes,
            "clipboard_entries": self.clipboard_entries,
            "result_available": self.result_available,
            "output_files": self.output_files,
            "duration_seconds": (
                (self.end_time - self.start_time).total_seconds()
                if self.start_time and self.end_time else None
            ),
            "errors": self.errors
        }


class ExplorationSession:
    """
    Holds the state of one exploration session: the search result being
    explored, its node filter, and the clipboard.

    The clipboard lives as long as the session; reset() clears it.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize session.

        Args:
            config: Configuration object
        """
        self.config = config or Config()
        self.clipboard = Clipboard()
        self._result: Optional[SearchResult] = None
        self._filter: Optional[NodeFilter] = None

    @property
    def result(self) -> Optional[SearchResult]:
        return self._result

    @property
    def node_filter(self) -> Optional[NodeFilter]:
        return self._filter

    def open(self, result: SearchResult) -> Optional[InterestingTransformations]:
        """
        Start exploring a search result.

        Returns:
            Rankings from automatic bookmarking, if it ran
        """
        explorer = self.config.explorer
        lattice = result.lattice

        self._result = result
        self._filter = NodeFilter(lattice.max_levels)
        self._filter.initialize(result, explorer.max_initial_nodes)

        if explorer.restricts_information_loss:
            self._filter.allow_information_loss(
                explorer.min_information_loss, explorer.max_information_loss
            )

        logger.info(f"Opened result: {lattice.size:,} nodes, "
                    f"{len(self.visible_nodes())} visible")

        if explorer.auto_curate:
            return self.clipboard.add_interesting_transformations(result, explorer.max_interesting)
        return None

    def visible_nodes(self) -> List[Node]:
        """Nodes passing the current filter."""
        if self._result is None or self._filter is None:
            return []
        return self._filter.apply(self._result.lattice)

    def reset(self) -> None:
        """Forget the result and filter, and clear the clipboard."""
        self._result = None
        self._filter = None
        self.clipboard.clear()
        logger.info("Session reset")

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Serializable state of the filter and the clipboard."""
        return {
            "version": SNAPSHOT_VERSION,
            "filter": None if self._filter is None else self._filter.to_dict(),
            "clipboard": self.clipboard.to_dict(),
        }

    def restore(self, state: Dict[str, Any], result: SearchResult) -> None:
        """
        Restore filter and clipboard for a result.

        Loss bounds outside [0, 1] are clamped during restore.
        """
        version = state.get("version", SNAPSHOT_VERSION)
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version: {version}")

        self._result = result
        filter_state = state.get("filter")
        if filter_state is not None:
            node_filter = NodeFilter.from_dict(filter_state)
            if node_filter.max_levels != result.lattice.max_levels:
                raise ValueError(
                    f"Snapshot filter levels {list(node_filter.max_levels)} do not match "
                    f"lattice {list(result.lattice.max_levels)}"
                )
            self._filter = node_filter
        else:
            self._filter = None

        self.clipboard = Clipboard.from_dict(state.get("clipboard", {}), result.lattice)
        logger.info(f"Restored session: {len(self.clipboard)} clipboard entries")

    def save_snapshot(self, path: str) -> str:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.snapshot(), f, indent=2)
        self.clipboard.set_unmodified()
        logger.info(f"Snapshot saved to {path}")
        return path

    def load_snapshot(self, path: str, result: SearchResult) -> None:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Snapshot not found: {path}")
        with open(path, 'r', encoding='utf-8') as f:
            state = json.load(f)
        self.restore(state, result)
        logger.info(f"Snapshot loaded from {path}")

    # -------------------------------------------------------------------------
    # Batch run
    # -------------------------------------------------------------------------

    def run(self) -> Dict[str, Any]:
        """
        Read, explore and write according to the configuration.

        Returns:
            Dictionary with execution results
        """
        from reader.lattice_reader import LatticeReader
        from writer.node_writer import get_writer

        result = SessionResult(success=False)
        result.start_time = datetime.now()

        try:
            # Step 1: Read lattice
            logger.info("=" * 60)
            logger.info("Step 1: Reading node table")
            logger.info("=" * 60)

            search_result = LatticeReader(self.config).read()
            lattice = search_result.lattice
            result.total_nodes = lattice.size
            result.result_available = search_result.is_result_available()

            # Step 2: Default view and bookmarks
            logger.info("=" * 60)
            logger.info("Step 2: Initializing view and clipboard")
            logger.info("=" * 60)

            self.reset()
            self.open(search_result)
            visible = self.visible_nodes()
            result.visible_nodes = len(visible)
            result.clipboard_entries = len(self.clipboard)

            # Step 3: Write output
            logger.info("=" * 60)
            logger.info("Step 3: Writing output")
            logger.info("=" * 60)

            writer = get_writer(self.config)
            result.output_files.append(writer.write(lattice, visible, "visible_nodes"))
            result.output_files.append(
                writer.write(lattice, self.clipboard.get_entries(), "clipboard", with_position=True)
            )
            if self.config.data.snapshot_path:
                result.output_files.append(self.save_snapshot(self.config.data.snapshot_path))

            result.success = True
            logger.info("Session completed successfully")

        except Exception as e:
            logger.exception(f"Session failed: {e}")
            result.errors.append(str(e))

        finally:
            result.end_time = datetime.now()

        return result.to_dict()
