"""Common utility functions."""

from __future__ import annotations

import re
import socket
import time
from pathlib import Path
from typing import Optional

import yaml


def format_byte_rate(bytes_per_sec: float) -> str:
    """Format a byte rate with SI (base 1000) units and one decimal."""
    unit = 1000
    if bytes_per_sec < unit:
        return f"{bytes_per_sec:.1f} B/s"
    
    div, exp = unit, 0
    n = bytes_per_sec / unit
    while n >= unit and exp < 5:
        div *= unit
        exp += 1
        n /= unit
    return f"{bytes_per_sec / div:.1f} {'kMGTPE'[exp]}B/s"


def parse_size(size_str: str) -> int:
    """Parse a size string (e.g., '8M', '512K', '1MiB') to bytes."""
    size_str = size_str.strip().upper()
    
    units = {
        'B': 1,
        'K': 1024,
        'KB': 1024,
        'KIB': 1024,
        'M': 1024 ** 2,
        'MB': 1024 ** 2,
        'MIB': 1024 ** 2,
        'G': 1024 ** 3,
        'GB': 1024 ** 3,
        'GIB': 1024 ** 3,
    }
    
    match = re.match(r'^(\d+(?:\.\d+)?)\s*([A-Z]*)$', size_str)
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")
    
    value = float(match.group(1))
    unit = match.group(2) or 'B'
    
    if unit not in units:
        raise ValueError(f"Unknown unit: {unit}")
    
    return int(value * units[unit])


def format_size(bytes_val: int, precision: int = 2) -> str:
    """Format bytes to human-readable string."""
    if bytes_val < 0:
        return "0 B"
    
    units = ['B', 'KB', 'MB', 'GB', 'TB', 'PB']
    unit_index = 0
    size = float(bytes_val)
    
    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1
    
    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    return f"{size:.{precision}f} {units[unit_index]}"


def get_short_hostname() -> str:
    """Short hostname, used to make resource names unique per client."""
    hostname = socket.gethostname() or "null"
    # dots are not valid in filesystem names
    return hostname.split(".")[0]


def load_yaml(path: str | Path) -> dict:
    """Load a YAML file."""
    with open(path, 'r') as f:
        return yaml.safe_load(f) or {}


def save_yaml(path: str | Path, data: dict) -> None:
    """Save data to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def ensure_dir(path: str | Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


class Timer:
    """Simple context manager for timing code blocks."""
    
    def __init__(self):
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
    
    def __enter__(self):
        self.start_time = time.monotonic()
        return self
    
    def __exit__(self, *args):
        self.end_time = time.monotonic()
    
    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None:
            return 0
        end = self.end_time or time.monotonic()
        return end - self.start_time
