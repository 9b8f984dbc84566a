"""
Configuration & Constants
=========================
This module serves as the central registry for global constants and file paths.

Why is this file needed?
------------------------
1. Single source: numerical guards, thresholds and limits used by the engine
   live here instead of being scattered as magic numbers.
2. Deployment: It handles the logic required by PyInstaller (sys._MEIPASS) to
   find assets (parameter presets) when the app is frozen into an .exe.

Exports:
    ASSETS_PATH (str): Absolute path to the assets directory.
    DEFAULT_PARAMETERS_PATH (str): Absolute path to the default parameter preset.
"""
import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def get_resource_path(relative_path: str) -> str:
    """
    Get absolute path to resource, works for dev and for PyInstaller.
    """
    if hasattr(sys, '_MEIPASS'):
        # PyInstaller temp folder
        base_path: str = getattr(sys, '_MEIPASS')
        return os.path.join(base_path, relative_path)

    # Development mode: resolve relative to this file
    # config.py is in src/universalequation/
    current_file_path: Path = Path(__file__)
    project_root: Path = current_file_path.parent.parent.parent
    return os.path.join(str(project_root), relative_path)


# --- Numerical guards ---
EPSILON: float = 1e-15
EXP_CLAMP: float = 709.0

# --- Lattice limits ---
MAX_DIMENSIONS_LIMIT: int = 20
DEFAULT_MAX_DIMENSIONS: int = 9

# --- Parallelism ---
# Units of work (vertices / interaction rows) above which work fans out to the pool
PARALLEL_THRESHOLD: int = 1000
MIN_PARALLEL_ACCUMULATORS: int = 4
# Vertices above which the pairwise (n^2) physics loops fan out
PHYSICS_PARALLEL_THRESHOLD: int = 100
WORKER_COUNT: int = os.cpu_count() or 1

# --- Allocation retry ---
# Enough attempts to walk any cap down to 1 and any dimension down to 1
RETRY_ATTEMPT_LIMIT: int = 2 * MAX_DIMENSIONS_LIMIT

# --- Interaction model ---
FIELD_CURVE_DISTANCE_SCALE: float = 10.0
DARK_ENERGY_DISTANCE_CAP: float = 10.0
SPIN_MAGNITUDE: float = 0.5

# --- Classical vertex physics ---
GRAVITATIONAL_CONSTANT: float = 6.67430e-11
COULOMB_CONSTANT: float = 8.9875517923e9
CHARGE_SCALE: float = 1e-15
MOMENTUM_LIMIT: float = 0.9

# --- Export ---
CSV_HEADER: tuple[str, ...] = (
    "Dimension", "Observable", "Potential", "Matter", "Energy",
    "Spin", "Momentum", "Field", "Wave",
)

# Global Paths
ASSETS_PATH: str = get_resource_path("assets")
DEFAULT_PARAMETERS_PATH: str = os.path.join(ASSETS_PATH, "parameters_default.json")

if not os.path.exists(ASSETS_PATH):
    logger.warning(f"Assets path not found at {ASSETS_PATH}")
