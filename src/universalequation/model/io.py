"""
Input/Output Manager
Handles the flat-file surface of the engine: the append-only CSV export of
energy snapshots and JSON parameter presets.
"""
import csv
import json
import logging
import os
from importlib.metadata import PackageNotFoundError, version
from typing import Iterable, Optional

from universalequation.config import CSV_HEADER, DEFAULT_PARAMETERS_PATH
from universalequation.model.parameters import ParameterSet
from universalequation.model.results import EnergyResult

# Get module logger
logger = logging.getLogger(__name__)

try:
    APP_VERSION = version("universalequation")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"


class IOManager:

    @staticmethod
    def export_to_csv(filepath: str, snapshots: Iterable[EnergyResult]) -> int:
        """
        Append ``snapshots`` to ``filepath``.

        The header row is written only when the file is new or empty; existing
        rows are never touched.

        Returns:
            Number of data rows written.
        """
        rows = [s.as_row() for s in snapshots]
        write_header = not os.path.exists(filepath) or os.path.getsize(filepath) == 0
        logger.info(f"Exporting {len(rows)} snapshot(s) to: {filepath}")
        try:
            with open(filepath, "a", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                if write_header:
                    writer.writerow(CSV_HEADER)
                writer.writerows(rows)
        except OSError as e:
            logger.error(f"Failed to export CSV: {e}")
            raise
        return len(rows)

    @staticmethod
    def save_parameters(parameters: ParameterSet, filepath: str) -> None:
        logger.info(f"Saving parameters to: {filepath}")
        payload = {"version": APP_VERSION, "parameters": parameters.to_dict()}
        try:
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save parameters: {e}")
            raise

    @staticmethod
    def load_parameters(filepath: Optional[str] = None) -> ParameterSet:
        """
        Load a JSON preset into a clamped :class:`ParameterSet`.

        Accepts either ``{"parameters": {...}}`` or a flat mapping. Missing keys
        keep their defaults.
        """
        filepath = filepath or DEFAULT_PARAMETERS_PATH
        logger.info(f"Loading parameters from: {filepath}")
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load parameters: {e}")
            raise

        if not isinstance(data, dict):
            raise ValueError(f"Parameter preset must be a JSON object, got {type(data).__name__}.")
        file_version = data.get("version")
        if file_version and file_version != APP_VERSION:
            logger.debug(f"Preset version {file_version} differs from {APP_VERSION}.")
        values = data["parameters"] if "parameters" in data else {k: v for k, v in data.items() if k != "version"}
        return ParameterSet.from_dict(values)
