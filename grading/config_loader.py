"""
Configuration loader for the grading engine.

Handles loading and validating grader configuration files.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .models import GraderConfig

logger = logging.getLogger(__name__)


def default_config_path() -> Path:
    """'config.json' next to the executable, or at the repository root."""
    if getattr(sys, 'frozen', False):
        base_dir = Path(sys.executable).parent
    else:
        base_dir = Path(__file__).parent.parent
    return base_dir / "config.json"


def load_config(config_path: Optional[Path] = None) -> GraderConfig:
    """
    Load grader configuration from a JSON file.

    Args:
        config_path: Path to the configuration file. If None, looks for
                    'config.json' next to the executable/script.

    Returns:
        GraderConfig object with validated configuration

    Raises:
        ValueError: If config is invalid
    """
    if config_path is None:
        config_path = default_config_path()

    if not config_path.exists():
        logger.warning("Config file '%s' not found. Using default configuration.", config_path)
        return GraderConfig.default()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ValueError(f"Error reading config file: {e}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a JSON object")

    config = GraderConfig.from_dict(data)

    is_valid, error_message = config.validate()
    if not is_valid:
        raise ValueError(f"Invalid configuration: {error_message}")

    return config


def create_sample_config(output_path: Path):
    """
    Create a sample configuration file for administrators.

    Args:
        output_path: Path where to save the sample config
    """
    sample_config = {
        "timeout_sec": 5.0,
        "max_output_bytes": 1048576,
        "memory_limit_mb": 256,
        "language": "python",
        "banks_dir": "banks",
        "bank_key_file": None,
        "bank_password": None,
        "database_url": "sqlite:///grading.db",
        "log_level": "INFO",
        "log_dir": "logs",
        "_comment": "This is a sample grader configuration. Adjust values as needed.",
        "_instructions": {
            "timeout_sec": "Wall-clock limit for one sandboxed program run",
            "max_output_bytes": "Maximum captured stdout/stderr per run, per stream",
            "memory_limit_mb": "Address-space limit for sandboxed programs (Linux/macOS only)",
            "language": "Language tag accepted by the code runner",
            "banks_dir": "Directory holding <examSetId>.json or <examSetId>.enc bank files",
            "bank_key_file": "Key file for encrypted banks (mutually exclusive with bank_password)",
            "bank_password": "Password for password-encrypted banks",
            "database_url": "SQLAlchemy database URL where submissions are stored",
            "log_level": "DEBUG, INFO, WARNING or ERROR",
            "log_dir": "Directory for rotating log files, or null for console only"
        }
    }

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(sample_config, f, indent=2)

    logger.info("Sample configuration created at: %s", output_path)
