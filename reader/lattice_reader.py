"""
Lattice Reader.

Loads the node table exported by the anonymization engine (CSV or Parquet)
into a SearchResult. One row per transformation:

    level_0, level_1, ..., anonymity, min_loss, max_loss[, optimum][, comment]
"""

import logging
import os
import re
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from core.config import Config
from schema.builder import link_generalizations
from schema.lattice import NODE_COMMENT, Anonymity, InformationLoss, Lattice, Node, SearchResult


logger = logging.getLogger(__name__)


LEVEL_COLUMN = re.compile(r"^level_(\d+)$")


class LatticeReader:
    """
    Reads an upstream node table into a lattice.

    Level columns are detected by the level_<i> naming pattern unless an
    explicit list of dimension columns is given.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        dimension_columns: Optional[List[str]] = None
    ):
        """
        Initialize reader.

        Args:
            config: Configuration object (column mapping and input settings)
            dimension_columns: Level columns in dimension order
        """
        self.config = config or Config()
        self.dimension_columns = dimension_columns

    def read(self, input_path: Optional[str] = None, input_format: Optional[str] = None) -> SearchResult:
        """
        Read a node table.

        Args:
            input_path: Override for config.data.input_path
            input_format: Override for config.data.input_format

        Returns:
            SearchResult with the lattice and the flagged optimum, if any
        """
        input_path = input_path or self.config.data.input_path
        input_format = input_format or self.config.data.input_format

        if not os.path.exists(input_path):
            raise FileNotFoundError(f"Node table not found: {input_path}")

        logger.info(f"Reading node table from: {input_path} ({input_format})")
        if input_format == 'csv':
            df = pd.read_csv(input_path)
        elif input_format == 'parquet':
            df = pd.read_parquet(input_path)
        else:
            raise ValueError(f"Unsupported input format: {input_format}")

        return self.from_dataframe(df)

    def _level_columns(self, df: pd.DataFrame) -> List[str]:
        if self.dimension_columns:
            missing = [c for c in self.dimension_columns if c not in df.columns]
            if missing:
                raise ValueError(f"Missing dimension columns: {missing}")
            return list(self.dimension_columns)

        matches = []
        for column in df.columns:
            match = LEVEL_COLUMN.match(str(column))
            if match:
                matches.append((int(match.group(1)), column))
        if not matches:
            raise ValueError("No level_<i> columns found in node table")
        return [column for _, column in sorted(matches)]

    def from_dataframe(self, df: pd.DataFrame) -> SearchResult:
        """Build a SearchResult from a node table DataFrame."""
        if df.empty:
            raise ValueError("Node table is empty")

        columns: Dict[str, str] = self.config.columns
        required = [columns['anonymity'], columns['min_loss'], columns['max_loss']]
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        level_columns = self._level_columns(df)
        levels = df[level_columns].to_numpy(dtype=np.int64)
        if (levels < 0).any():
            raise ValueError("Generalization levels must be non-negative")

        min_losses = pd.to_numeric(df[columns['min_loss']], errors='coerce').to_numpy(dtype=float)
        max_losses = pd.to_numeric(df[columns['max_loss']], errors='coerce').to_numpy(dtype=float)
        anonymity = [Anonymity.parse(value) for value in df[columns['anonymity']]]

        optimum_column = columns.get('optimum')
        has_optimum = optimum_column in df.columns
        comment_column = columns.get('comment')
        has_comment = comment_column in df.columns

        # Arena ids follow height order, so lattice levels keep row order within a height
        order = np.argsort(levels.sum(axis=1), kind="stable")

        nodes: List[Node] = []
        optimum: Optional[Node] = None
        for node_id, row in enumerate(order):
            node = Node(
                id=node_id,
                transformation=tuple(int(x) for x in levels[row]),
                anonymity=anonymity[row],
                min_loss=_loss(min_losses[row]),
                max_loss=_loss(max_losses[row]),
            )
            if has_comment:
                comment = df[comment_column].iloc[row]
                if isinstance(comment, str) and comment:
                    node.attributes[NODE_COMMENT] = comment
            if has_optimum and _truthy(df[optimum_column].iloc[row]):
                if optimum is not None:
                    raise ValueError("Node table flags more than one optimum")
                if node.anonymity != Anonymity.ANONYMOUS:
                    raise ValueError(
                        f"Optimum {list(node.transformation)} is {node.anonymity.value}, "
                        f"expected {Anonymity.ANONYMOUS.value}"
                    )
                optimum = node
            nodes.append(node)

        link_generalizations(nodes)
        lattice = Lattice(nodes)

        logger.info(
            f"Loaded lattice: {lattice.size:,} nodes, {lattice.dimensions} dimensions, "
            f"optimum={'none' if optimum is None else list(optimum.transformation)}"
        )
        return SearchResult(lattice=lattice, global_optimum=optimum)


def _loss(value: float) -> Optional[InformationLoss]:
    if np.isnan(value):
        return None
    return InformationLoss(float(value))


def _truthy(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'y')
    if pd.isna(value):
        return False
    return bool(value)
