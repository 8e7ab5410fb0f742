"""
Helpers shared by the CLI entry points: logging setup and component wiring.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from orb.automation.config import OrbConfig, load_config_from_yaml
from orb.automation.scheduler import Scheduler
from orb.data.download import CsvPriceSource, PriceSource, YahooPriceSource
from orb.shared.errors import ConfigError


DEFAULT_CONFIG_PATH = "configs/orb_config.yaml"


def setup_logging(log_path: Optional[Path] = None, verbose: bool = False):
    """
    Setup logging to stdout and optionally to file.

    Args:
        log_path: Path to log file (None = stdout only)
        verbose: If True, use DEBUG level, otherwise INFO
    """
    level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def load_config(config_path: str) -> Optional[OrbConfig]:
    """Load the YAML config, printing the problem and returning None on failure."""
    try:
        return load_config_from_yaml(config_path)
    except FileNotFoundError:
        print(f"Error: Config file not found: {config_path}", file=sys.stderr)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
    return None


def build_price_source(config: OrbConfig) -> PriceSource:
    if config.csv_path:
        return CsvPriceSource(config.csv_path)
    return YahooPriceSource()


def build_scheduler(config: OrbConfig) -> Scheduler:
    return Scheduler(
        market_close_hour=config.market_close_hour,
        market_close_minute=config.market_close_minute,
        wait_after_close_minutes=config.wait_after_close_minutes,
        timezone=config.timezone,
    )
