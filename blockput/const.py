"""Constants for the blockput client."""

import os
from pathlib import Path

UP_HOST = os.getenv("BLOCKPUT_UP_HOST", "https://up.qiniup.com")

BYTES_PER_KIB = 1024

DEFAULT_BLOCK_SIZE_EXP = 22  # 4 MiB blocks
MIN_BLOCK_SIZE_EXP = 16
MAX_BLOCK_SIZE_EXP = 30
DEFAULT_CHUNK_SIZE = 256 * BYTES_PER_KIB
DEFAULT_RETRY_TIMES = 3
DEFAULT_MAX_WORKERS = 8
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0
DEFAULT_MAX_BACKOFF_SECONDS = 30.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 300.0

# Status the upload service returns when a block context is unknown or expired
INVALID_CONTEXT_STATUS = 701

OCTET_STREAM = "application/octet-stream"
TEXT_PLAIN = "text/plain"

CONFIG_DIR = Path.home() / ".blockput"
PROGRESS_DIR = CONFIG_DIR / "progress"
PROFILES_DIR_NAME = "profiles"
