"""
Shared utility functions for raceprobe.
"""

import json
import logging
import re
import tomllib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


def setup_logging(
    name: str = "raceprobe",
    level: str = "INFO",
    log_file: Optional[str] = None,
    verbose: bool = False,
) -> logging.Logger:
    """Configure and return a logger instance."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if verbose else getattr(logging, level.upper()))

    # Modules call this at import time, keep one handler set per logger
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def load_config(config_path: str) -> Dict[str, Any]:
    """Load a configuration mapping from a YAML, JSON or TOML file."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if path.suffix.lower() == ".toml":
        with open(path, "rb") as f:
            return tomllib.load(f)

    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            config = json.load(f)
        else:
            config = yaml.safe_load(f)

    return config or {}


def split_cookie(cookie: str) -> Optional[Tuple[str, str]]:
    """
    Split a "name=value" cookie string on the first '='.

    Returns None when the string has no '=' at all.
    """
    if "=" not in cookie:
        return None
    name, value = cookie.split("=", 1)
    return name.strip(), value.strip()


def split_header(header: str) -> Optional[Tuple[str, str]]:
    """
    Split a "Name: value" header string on the first ':'.

    Returns None when there is no ':' or the name is empty.
    """
    if ":" not in header:
        return None
    name, value = header.split(":", 1)
    name = name.strip()
    if not name:
        return None
    return name, value.strip()


def cookies_to_string(cookies: List[str]) -> str:
    """Join raw "name=value" cookie strings into a Cookie header value."""
    return "; ".join(c.strip() for c in cookies)


def safe_filename(name: str, max_length: int = 200) -> str:
    """Convert string to safe filename."""
    # Replace unsafe characters
    safe = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", name)
    safe = re.sub(r"_+", "_", safe)
    safe = safe.strip("_. ")

    if len(safe) > max_length:
        safe = safe[:max_length]

    return safe or "unnamed"


def timestamp_now() -> str:
    """Return current timestamp in ISO format."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def ensure_dir(path: str) -> Path:
    """Ensure directory exists, create if not."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p
