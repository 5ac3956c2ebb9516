"""
Centralized settings and path configuration for the pricing engine.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def get_package_data_dir() -> Path:
    """Directory holding the reference CSV tables shipped with the package."""
    return Path(__file__).resolve().parent.parent / 'data' / 'reference'


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('true', '1', 'yes', 'on')


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    return float(value)


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Reference tables (services, tiers, rules, bindings, print prices...)
    data_dir: Path

    # Write admin changes back to the CSV tables
    persist_writes: bool = False

    # Sheet layout geometry (mm)
    layout_margin_mm: float = 5.0
    layout_gap_mm: float = 2.0
    default_sheet_width_mm: float = 320.0
    default_sheet_height_mm: float = 450.0

    currency: str = 'BYN'
    log_level: str = 'INFO'

    @classmethod
    def load(cls, project_root: Optional[Path] = None, data_dir: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()

        env_data_dir = os.environ.get('PRINT_PRICING_DATA_DIR')
        if data_dir is None:
            data_dir = Path(env_data_dir) if env_data_dir else get_package_data_dir()

        return cls(
            project_root=root,
            data_dir=data_dir,
            persist_writes=_env_bool('PRINT_PRICING_PERSIST', False),
            layout_margin_mm=_env_float('PRINT_PRICING_MARGIN_MM', 5.0),
            layout_gap_mm=_env_float('PRINT_PRICING_GAP_MM', 2.0),
            log_level=os.environ.get('PRINT_PRICING_LOG_LEVEL', 'INFO').upper(),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
