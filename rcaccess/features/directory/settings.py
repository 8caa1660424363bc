"""
Directory login configuration.

Loaded once per process and immutable afterwards. The group mapping table
lives in a JSON file (``DIRECTORY_GROUP_MAPPINGS_FILE``):

    [
      {
        "group_identifier": "cn=finance,ou=groups,dc=example,dc=com",
        "application_role": "FINANCE",
        "is_admin": false,
        "rc_access": {"Operations": "READ_WRITE", "Demo": "READ_ONLY"}
      }
    ]

``rc_access`` maps RC names to access levels. Levels are kept as raw strings
here and validated per mapping during sync, so one bad entry only disables
that mapping.
"""
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from rcaccess.core import config
from rcaccess.core.errors import ConfigurationError
from rcaccess.features.permissions.models import AccessLevel
from rcaccess.utils import get_logger


log = get_logger(__name__)


class GroupRoleMapping(BaseModel):
    """One directory group and what membership in it confers."""
    group_identifier: str = Field(..., min_length=1)
    display_name: Optional[str] = None
    application_role: Optional[str] = None
    is_admin: bool = False
    rc_access: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def matches(self, group_identifier: str) -> bool:
        # Directory names are case-insensitive
        return self.group_identifier.lower() == group_identifier.lower()

    def access_levels(self) -> Dict[str, AccessLevel]:
        """
        Parsed ``rc_access``.
        
        Raises:
            ConfigurationError: a level is not READ_ONLY, READ_WRITE or OWNER
        """
        levels = {}
        for rc_name, raw_level in self.rc_access.items():
            try:
                levels[rc_name] = AccessLevel(raw_level.strip().upper())
            except ValueError:
                raise ConfigurationError(
                    f"Invalid access level {raw_level!r} for RC {rc_name!r} "
                    f"in mapping for {self.group_identifier!r}"
                )
        return levels


class DirectorySettings(BaseModel):
    enabled: bool = False
    allow_auto_provision: bool = True
    sync_timeout_seconds: float = Field(5.0, gt=0)
    group_mappings: tuple[GroupRoleMapping, ...] = ()

    model_config = ConfigDict(frozen=True)


_mappings_adapter = TypeAdapter(tuple[GroupRoleMapping, ...])


def parse_group_mappings(raw: str | bytes) -> tuple[GroupRoleMapping, ...]:
    """
    Parse the JSON mapping table.
    
    Raises:
        ConfigurationError: not a JSON list of well-formed mapping objects
    """
    try:
        return _mappings_adapter.validate_json(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Malformed directory group mappings: {e}") from e


def build_directory_settings(
    enabled: bool,
    allow_auto_provision: bool,
    sync_timeout_seconds: float,
    mappings_file: Optional[str],
) -> DirectorySettings:
    mappings: tuple[GroupRoleMapping, ...] = ()
    if mappings_file:
        path = Path(mappings_file)
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Cannot read directory group mappings {path}: {e}") from e
        mappings = parse_group_mappings(raw)

    settings = DirectorySettings(
        enabled=enabled,
        allow_auto_provision=allow_auto_provision,
        sync_timeout_seconds=sync_timeout_seconds,
        group_mappings=mappings,
    )
    log.info(
        f"Directory login {'enabled' if enabled else 'disabled'} with "
        f"{len(mappings)} group mapping(s), auto-provision={allow_auto_provision}"
    )
    return settings


@lru_cache
def get_directory_settings() -> DirectorySettings:
    """Process-wide directory settings, read from the environment on first use."""
    return build_directory_settings(
        enabled=config.DIRECTORY_ENABLED,
        allow_auto_provision=config.DIRECTORY_ALLOW_AUTO_PROVISION,
        sync_timeout_seconds=config.DIRECTORY_SYNC_TIMEOUT,
        mappings_file=config.DIRECTORY_GROUP_MAPPINGS_FILE,
    )
