"""
Node Table Writers.

Write node lists (the visible view, the clipboard) as tables for inspection
by other tools.
"""

import logging
import os
from typing import Optional, Sequence

import pandas as pd

from core.config import Config
from schema.lattice import Lattice, Node


logger = logging.getLogger(__name__)


def nodes_to_dataframe(
    lattice: Lattice,
    nodes: Sequence[Node],
    with_position: bool = False
) -> pd.DataFrame:
    """
    Convert nodes to a DataFrame.

    Columns: node_id, level_<i>..., anonymity, min_loss, max_loss,
    relative_min_loss, relative_max_loss, comment (and position first if
    with_position is set).
    """
    level_columns = [f"level_{i}" for i in range(lattice.dimensions)]
    columns = ['node_id'] + level_columns + [
        'anonymity', 'min_loss', 'max_loss',
        'relative_min_loss', 'relative_max_loss', 'comment'
    ]
    if with_position:
        columns = ['position'] + columns

    if not nodes:
        return pd.DataFrame(columns=columns)

    records = []
    for position, node in enumerate(nodes):
        relative_min, relative_max = lattice.relative_loss(node)
        record = {'node_id': node.id}
        if with_position:
            record['position'] = position
        for column, level in zip(level_columns, node.transformation):
            record[column] = level
        record['anonymity'] = node.anonymity.value
        record['min_loss'] = None if node.min_loss is None else node.min_loss.value
        record['max_loss'] = None if node.max_loss is None else node.max_loss.value
        record['relative_min_loss'] = relative_min
        record['relative_max_loss'] = relative_max
        record['comment'] = node.comment
        records.append(record)

    return pd.DataFrame(records, columns=columns)


class CSVWriter:
    """Writes node tables as CSV files."""

    EXTENSION = "csv"

    def __init__(self, config: Config):
        """Initialize CSV writer."""
        self.config = config

    def write(
        self,
        lattice: Lattice,
        nodes: Sequence[Node],
        name: str,
        output_path: Optional[str] = None,
        with_position: bool = False
    ) -> str:
        """
        Write nodes to <output_path>/<name>.<ext>.

        Returns:
            Path of the written file
        """
        output_path = output_path or self.config.data.output_path
        os.makedirs(output_path, exist_ok=True)

        file_path = os.path.join(output_path, f"{name}.{self.EXTENSION}")
        df = nodes_to_dataframe(lattice, nodes, with_position=with_position)
        if df.empty:
            logger.warning(f"No nodes to write for {name}, writing header only")

        self._write_frame(df, file_path)
        logger.info(f"{self.EXTENSION.upper()} written to: {file_path} ({len(df):,} nodes)")
        return file_path

    def _write_frame(self, df: pd.DataFrame, file_path: str) -> None:
        df.to_csv(file_path, index=False, encoding='utf-8')


class ParquetWriter(CSVWriter):
    """Writes node tables as Parquet files."""

    EXTENSION = "parquet"

    def _write_frame(self, df: pd.DataFrame, file_path: str) -> None:
        df.to_parquet(file_path, index=False)


def get_writer(config: Config) -> CSVWriter:
    """Writer for config.data.output_format."""
    if config.data.output_format == 'parquet':
        return ParquetWriter(config)
    return CSVWriter(config)
