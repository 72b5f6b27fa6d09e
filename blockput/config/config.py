"""Resolve upload configuration from profile, environment, and CLI overrides."""

from __future__ import annotations

import os
from typing import Any

from blockput.config.helpers import parse_bytes
from blockput.config.profiles import ProfileManager
from blockput.config.upload_config import UploadConfig

_ENV_MAP: dict[str, str] = {
    "up_host": "BLOCKPUT_UP_HOST",
    "block_size_exp": "BLOCKPUT_BLOCK_SIZE_EXP",
    "chunk_size": "BLOCKPUT_CHUNK_SIZE",
    "retry_times": "BLOCKPUT_RETRY_TIMES",
    "max_workers": "BLOCKPUT_MAX_WORKERS",
    "request_timeout": "BLOCKPUT_REQUEST_TIMEOUT",
    "progress_dir": "BLOCKPUT_PROGRESS_DIR",
    "checkpoint_blocks": "BLOCKPUT_CHECKPOINT_BLOCKS",
}

_INT_FIELDS = {"block_size_exp", "retry_times", "max_workers"}

YES_CONFIRMATION = {"1", "true", "yes", "y"}


class ConfigManager:
    """Build the effective upload configuration for one run."""

    def __init__(
        self, profile_manager: ProfileManager, profile: str | None = None
    ) -> None:
        """Initialise ConfigManager.

        Args:
            profile_manager: ProfileManager instance.
            profile: Name of the profile to load as the base configuration.
        """
        self.profile_manager = profile_manager
        self.profile = profile

    def _read_env_overrides(self) -> dict[str, Any]:
        """Read configuration overrides from environment variables.

        Values that cannot be parsed are ignored.
        """
        overrides: dict[str, Any] = {}

        for field_name, env_var_name in _ENV_MAP.items():
            env_value = os.getenv(env_var_name)
            if env_value is None:
                continue

            try:
                if field_name == "chunk_size":
                    overrides[field_name] = parse_bytes(env_value)
                elif field_name in _INT_FIELDS:
                    overrides[field_name] = int(env_value)
                elif field_name == "request_timeout":
                    overrides[field_name] = float(env_value)
                elif field_name == "checkpoint_blocks":
                    overrides[field_name] = env_value.lower() in YES_CONFIRMATION
                else:
                    overrides[field_name] = env_value
            except ValueError:
                continue

        return overrides

    def resolve_effective_config(
        self, cli_config: dict[str, Any] | None = None
    ) -> UploadConfig:
        """Resolve the effective configuration for this run.

        Precedence, lowest first: profile (or defaults), environment, CLI.

        Args:
            cli_config: Optional CLI-provided overrides. ``None`` values are
                ignored.

        Returns:
            The validated ``UploadConfig``.
        """
        merged = self.profile_manager.get_profile(self.profile).model_dump()
        merged.update(self._read_env_overrides())
        if cli_config is not None:
            merged.update(
                {name: value for name, value in cli_config.items() if value is not None}
            )
        return UploadConfig.model_validate(merged)
