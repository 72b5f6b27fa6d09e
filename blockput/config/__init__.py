"""Configuration for blockput uploads."""

from blockput.config.config import ConfigManager
from blockput.config.helpers import parse_bytes
from blockput.config.profiles import ProfileManager
from blockput.config.upload_config import UploadConfig

__all__ = ["ConfigManager", "ProfileManager", "UploadConfig", "parse_bytes"]
