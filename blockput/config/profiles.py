"""Named upload profiles stored as YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from blockput.config.helpers import parse_bytes
from blockput.config.upload_config import UploadConfig
from blockput.const import PROFILES_DIR_NAME
from blockput.exceptions import ProfileAlreadyExist, ProfileNotFound

BYTE_FIELDS = ("chunk_size",)


class ProfileManager:
    """Manage upload profiles stored on disk."""

    def __init__(self, home_path: Path | None = None) -> None:
        """Initialise ProfileManager.

        Args:
            home_path: Directory standing in for the user's home directory.
        """
        self._home_path = home_path or Path.home()

    @property
    def home_path(self) -> Path:
        """Return the home path used for resolving configuration."""
        return self._home_path

    def _profiles_dir(self) -> Path:
        return self._home_path / ".blockput" / PROFILES_DIR_NAME

    def _get_profile_path(self, profile: str) -> Path:
        profiles_dir = self._profiles_dir()
        profiles_dir.mkdir(parents=True, exist_ok=True)
        return profiles_dir / f"{profile}.yaml"

    def list_profiles(self) -> list[str]:
        """List available profile names.

        Returns:
            Sorted profile names without the ``.yaml`` suffix.
        """
        profiles_dir = self._profiles_dir()
        if not profiles_dir.exists():
            return []
        return sorted(
            path.stem
            for path in profiles_dir.iterdir()
            if path.is_file() and path.suffix == ".yaml"
        )

    def get_profile(self, profile: str | None = None) -> UploadConfig:
        """Load a profile configuration from disk.

        Args:
            profile: Name of the profile to load. ``None`` returns defaults.

        Returns:
            Parsed upload configuration for the profile.

        Raises:
            ProfileNotFound: If the profile YAML file does not exist.
        """
        if profile is None:
            return UploadConfig()

        profile_path = self._get_profile_path(profile)
        try:
            with profile_path.open("r") as profile_file:
                profile_data = yaml.safe_load(profile_file) or {}
        except FileNotFoundError as exc:
            raise ProfileNotFound(f"Profile {profile!r} not found.") from exc

        for field_name in BYTE_FIELDS:
            raw_value = profile_data.get(field_name)
            if raw_value is not None:
                profile_data[field_name] = parse_bytes(raw_value)

        return UploadConfig(**profile_data)

    def create_profile(self, profile: str) -> UploadConfig:
        """Create a new profile holding the default configuration.

        Raises:
            ProfileAlreadyExist: If a profile with the same name already exists.
        """
        profile_path = self._get_profile_path(profile)
        upload_config = UploadConfig()
        try:
            with profile_path.open("x") as profile_file:
                yaml.safe_dump(upload_config.model_dump(), profile_file)
        except FileExistsError as exc:
            raise ProfileAlreadyExist(f"Profile {profile!r} already exists.") from exc
        return upload_config

    def update_profile(self, profile: str, updates: dict[str, Any]) -> UploadConfig:
        """Update an existing profile with the provided field values.

        Args:
            profile: Name of the profile to update.
            updates: Field values to store. ``None`` values are ignored.

        Returns:
            The updated configuration.

        Raises:
            ProfileNotFound: If the profile YAML file does not exist.
        """
        current = self.get_profile(profile)
        filtered_updates = {
            name: value for name, value in updates.items() if value is not None
        }
        new_config = UploadConfig.model_validate(
            {**current.model_dump(), **filtered_updates}
        )
        with self._get_profile_path(profile).open("w") as profile_file:
            yaml.safe_dump(new_config.model_dump(), profile_file)
        return new_config

    def delete_profile(self, profile: str) -> None:
        """Delete a profile.

        Raises:
            ProfileNotFound: If the profile YAML file does not exist.
        """
        try:
            self._get_profile_path(profile).unlink()
        except FileNotFoundError as exc:
            raise ProfileNotFound(f"Profile {profile!r} not found.") from exc
