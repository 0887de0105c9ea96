"""
Configuration management for the Lattice Explorer.
Explorer and data settings, read from and written to INI files.
"""

import configparser
import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional


logger = logging.getLogger(__name__)


FORMATS = ('csv', 'parquet')


@dataclass
class ExplorerConfig:
    """Settings for the default view and automatic bookmarking."""

    # Node budget for the initial filter view
    max_initial_nodes: int = 100

    # Capacity of each ranking used for interesting transformations
    max_interesting: int = 10

    # Bookmark interesting transformations when a result is opened
    auto_curate: bool = True

    # Acceptance interval applied after the filter is initialized
    min_information_loss: float = 0.0
    max_information_loss: float = 1.0

    def validate(self) -> None:
        """Check budget, capacity and loss bounds."""
        if self.max_initial_nodes < 1:
            raise ValueError(f"max_initial_nodes must be >= 1, got {self.max_initial_nodes}")

        if self.max_interesting < 1:
            raise ValueError(f"max_interesting must be >= 1, got {self.max_interesting}")

        # min > max is accepted, as in NodeFilter
        if not 0.0 <= self.min_information_loss <= 1.0:
            raise ValueError(f"min_information_loss must be in [0, 1], got {self.min_information_loss}")
        if not 0.0 <= self.max_information_loss <= 1.0:
            raise ValueError(f"max_information_loss must be in [0, 1], got {self.max_information_loss}")

    @property
    def restricts_information_loss(self) -> bool:
        return self.min_information_loss != 0.0 or self.max_information_loss != 1.0


@dataclass
class DataConfig:
    """Input/output configuration."""
    input_path: str = ""
    output_path: str = ""
    input_format: str = "csv"  # csv or parquet
    output_format: str = "csv"  # csv or parquet
    snapshot_path: Optional[str] = None  # Session snapshot (JSON), optional

    def validate(self) -> None:
        """Check paths and formats."""
        if not self.input_path:
            raise ValueError("input_path must be specified")
        if not self.output_path:
            raise ValueError("output_path must be specified")
        if self.input_format not in FORMATS:
            raise ValueError(f"input_format must be one of {FORMATS}, got {self.input_format}")
        if self.output_format not in FORMATS:
            raise ValueError(f"output_format must be one of {FORMATS}, got {self.output_format}")


@dataclass
class Config:
    """Explorer, data and column settings."""
    explorer: ExplorerConfig = field(default_factory=ExplorerConfig)
    data: DataConfig = field(default_factory=DataConfig)

    # Node table column names, keyed by the name the reader uses
    columns: Dict[str, str] = field(default_factory=lambda: {
        "anonymity": "anonymity",
        "min_loss": "min_loss",
        "max_loss": "max_loss",
        "optimum": "optimum",
        "comment": "comment",
    })

    def validate(self) -> None:
        """Validate all sections."""
        self.explorer.validate()
        self.data.validate()
        logger.info("Configuration validated successfully")

    @classmethod
    def from_ini(cls, config_path: str) -> "Config":
        """Read settings from an INI file; absent keys keep their defaults."""
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")

        parser = configparser.ConfigParser()
        parser.read(config_path, encoding='utf-8')

        config = cls()

        # [explorer]
        if 'explorer' in parser:
            sec = parser['explorer']
            if 'max_initial_nodes' in sec:
                config.explorer.max_initial_nodes = int(sec['max_initial_nodes'])
            if 'max_interesting' in sec:
                config.explorer.max_interesting = int(sec['max_interesting'])
            if 'auto_curate' in sec:
                config.explorer.auto_curate = sec.getboolean('auto_curate')
            if 'min_information_loss' in sec:
                config.explorer.min_information_loss = float(sec['min_information_loss'])
            if 'max_information_loss' in sec:
                config.explorer.max_information_loss = float(sec['max_information_loss'])

        # [data]
        if 'data' in parser:
            sec = parser['data']
            config.data.input_path = sec.get('input_path', '')
            config.data.output_path = sec.get('output_path', '')
            config.data.input_format = sec.get('input_format', 'csv')
            config.data.output_format = sec.get('output_format', 'csv')
            snapshot_path = sec.get('snapshot_path', '').strip()
            config.data.snapshot_path = snapshot_path or None

        # [columns]
        if 'columns' in parser:
            for key, value in parser['columns'].items():
                config.columns[key] = value

        logger.info(f"Configuration loaded from {config_path}")
        return config

    def to_ini(self, config_path: str) -> None:
        """Write settings to an INI file readable by from_ini()."""
        parser = configparser.ConfigParser()

        parser['explorer'] = {
            'max_initial_nodes': str(self.explorer.max_initial_nodes),
            'max_interesting': str(self.explorer.max_interesting),
            'auto_curate': str(self.explorer.auto_curate).lower(),
            'min_information_loss': str(self.explorer.min_information_loss),
            'max_information_loss': str(self.explorer.max_information_loss),
        }

        parser['data'] = {
            'input_path': self.data.input_path,
            'output_path': self.data.output_path,
            'input_format': self.data.input_format,
            'output_format': self.data.output_format,
        }
        if self.data.snapshot_path is not None:
            parser['data']['snapshot_path'] = self.data.snapshot_path

        parser['columns'] = self.columns

        with open(config_path, 'w', encoding='utf-8') as f:
            parser.write(f)

        logger.info(f"Configuration saved to {config_path}")
