"""Shared configuration constants for the application."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

CDN_BASE_URL = os.getenv("ASSET_CDN_BASE", "https://dl.dir.freefiremobile.com/common").rstrip("/")

REGIONS: List[str] = ["SG", "IND", "EU", "NA"]
INDICES: List[int] = [1, 2, 3, 4, 5, 6]

BATCH_SIZE = int(os.getenv("PROBE_BATCH_SIZE", "12"))
PROBE_TIMEOUT = float(os.getenv("PROBE_TIMEOUT", "8"))

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
ACCEPT_IMAGE = "image/avif,image/webp,image/apng,image/*,*/*;q=0.8"

RESULTS_FILE = Path(os.getenv("RESULTS_FILE", "data/results.csv"))

_EXPORTED_NAMES = (
    "CDN_BASE_URL",
    "REGIONS",
    "INDICES",
    "BATCH_SIZE",
    "PROBE_TIMEOUT",
    "USER_AGENT",
    "ACCEPT_IMAGE",
    "RESULTS_FILE",
)

__all__ = [name for name in _EXPORTED_NAMES if name in globals()]
