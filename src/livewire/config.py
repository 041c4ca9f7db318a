"""
Configuration management for live-wire tracing.

Loads YAML configuration with sensible defaults for the cost synthesis,
the interactive session and export.
"""

import os
from dataclasses import asdict, dataclass, field

import yaml


@dataclass
class CostConfig:
    """Weights and thresholds for per-pixel cost synthesis."""
    laplacian_weight: float = 0.43
    gradient_magnitude_weight: float = 0.43
    gradient_direction_weight: float = 0.14
    zero_crossing_threshold: float = 0.5


@dataclass
class SessionConfig:
    """Configuration for the interactive tracing session."""
    closure_threshold: float = 10.0  # pixels
    auto_freeze: bool = False
    settle_interval_ms: int = 600
    cursor_snap_radius: int = 0  # 0 disables snapping


@dataclass
class ExportConfig:
    """Configuration for selection export."""
    crop_padding: int = 5


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class DebugConfig:
    """Configuration for debug artifact generation."""
    enabled: bool = False
    max_edge_scale: int = 1600


@dataclass
class LiveWireConfig:
    """Complete live-wire configuration."""
    cost: CostConfig = field(default_factory=CostConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)


SECTIONS = ("cost", "session", "export", "tracing", "debug")


def load_config(config_path=None):
    """
    Load configuration from YAML file.

    Falls back to defaults for any missing values.
    """
    config = LiveWireConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = _merge_config(config, yaml_data)

    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass, ignoring unknown keys."""
    for section_name in SECTIONS:
        section_data = yaml_data.get(section_name)
        if not section_data:
            continue

        section = getattr(config, section_name)
        for key, value in section_data.items():
            if hasattr(section, key):
                setattr(section, key, value)

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    yaml_data = asdict(LiveWireConfig())

    # file_path has no meaningful default
    yaml_data["tracing"].pop("file_path", None)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
