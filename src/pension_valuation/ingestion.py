"""
pension_valuation/ingestion.py - Scenario Ingestion

Loads pension scenarios from:
1. JSON files (one scenario object, or a list of them)
2. CSV / Excel tables (one scenario per row)

Column headers are standardized to PensionInputs field names (snake_case,
camelCase and spaced headers all work), and every loaded file is fingerprinted
with SHA-256 so a valuation can be traced back to its exact input.

Author: Pension Valuation Project
License: MIT
"""

import pandas as pd
import hashlib
import json
from datetime import datetime
from typing import List, Optional, Union, Any, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
import logging

from .engine import PensionInputs, FIELD_ALIASES, ID_KEYS, normalize_key

logger = logging.getLogger(__name__)

# Formats openpyxl can read; legacy .xls is not supported
EXCEL_SUFFIXES = ('.xlsx', '.xlsm')


@dataclass
class ScenarioResult:
    """Loaded scenario table with its audit information."""
    data: pd.DataFrame
    input_hash: str
    input_filename: str
    total_records: int
    processing_timestamp: datetime

    def to_inputs(self) -> List[PensionInputs]:
        return [PensionInputs.from_dict(row.to_dict()) for _, row in self.data.iterrows()]


def inputs_from_dict(mapping: Mapping[str, Any]) -> PensionInputs:
    """
    Build PensionInputs from a dictionary.

    Raises:
        ValueError: if a required field is missing
    """
    return PensionInputs.from_dict(mapping)


def load_inputs_json(filepath: Union[str, Path]) -> List[PensionInputs]:
    """
    Load one or more scenarios from a JSON file.

    The file may hold a single object or a list of objects.
    """
    filepath = Path(filepath)
    with open(filepath, 'r') as f:
        payload = json.load(f)

    records = payload if isinstance(payload, list) else [payload]
    logger.info(f"Loaded {len(records)} scenario(s) from {filepath.name}")
    return [inputs_from_dict(record) for record in records]


class ScenarioLoader:
    """Loads scenario tables with column standardization and hashing."""

    def load_file(self, filepath: Union[str, Path],
                  sheet_name: Optional[str] = None) -> ScenarioResult:
        """
        Load a scenario table.

        Args:
            filepath: Path to Excel or CSV file
            sheet_name: Sheet name for Excel files (first sheet if None)

        Returns:
            ScenarioResult with standardized data and audit information

        Raises:
            ValueError: for an unsupported file format
        """
        filepath = Path(filepath)

        file_hash = self._hash_file(filepath)
        logger.info(f"Loading file: {filepath.name} (SHA-256: {file_hash[:16]}...)")

        suffix = filepath.suffix.lower()
        if suffix in EXCEL_SUFFIXES:
            df = pd.read_excel(filepath, sheet_name=sheet_name or 0)
        elif suffix == '.csv':
            df = pd.read_csv(filepath)
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")

        logger.info(f"Loaded {len(df)} records")

        df = self._standardize_columns(df)

        return ScenarioResult(
            data=df,
            input_hash=file_hash,
            input_filename=filepath.name,
            total_records=len(df),
            processing_timestamp=datetime.now(),
        )

    def _standardize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Rename headers to PensionInputs field names."""
        field_names = {normalize_key(f.name): f.name for f in fields(PensionInputs)}

        rename_map = {}
        duplicates = []
        for col in df.columns:
            col_norm = normalize_key(col)
            target = field_names.get(col_norm) or FIELD_ALIASES.get(col_norm)
            if target is None and col_norm in ID_KEYS:
                target = 'ScenarioID'
            if not target or target == col:
                continue
            if target in df.columns or target in rename_map.values():
                logger.warning(f"Dropping column {col!r}: duplicates {target!r}")
                duplicates.append(col)
                continue
            rename_map[col] = target

        if duplicates:
            df = df.drop(columns=duplicates)
        if rename_map:
            df = df.rename(columns=rename_map)

        if 'ScenarioID' not in df.columns:
            df['ScenarioID'] = [f'S{i:04d}' for i in range(len(df))]

        return df

    def _hash_file(self, filepath: Path) -> str:
        """Calculate SHA-256 hash of file."""
        sha256 = hashlib.sha256()
        with open(filepath, 'rb') as f:
            for chunk in iter(lambda: f.read(8192), b''):
                sha256.update(chunk)
        return sha256.hexdigest()


def load_scenarios(filepath: Union[str, Path],
                   sheet_name: Optional[str] = None) -> ScenarioResult:
    """Convenience wrapper around ScenarioLoader.load_file."""
    return ScenarioLoader().load_file(filepath, sheet_name)
