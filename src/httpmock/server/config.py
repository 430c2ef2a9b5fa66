"""
HttpMock Server Configuration

Dataclass configuration with dictionary and YAML loaders.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_PORT = 28080
DEFAULT_ADMIN_PREFIX = '/__admin__'


@dataclass
class MockConfig:
    """Configuration for mock server behavior."""

    # Server options
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    log_level: str = "info"
    access_log: bool = False

    # Control channel
    admin_prefix: str = DEFAULT_ADMIN_PREFIX

    # Callback name -> "module:attr" import path, registered at startup
    callbacks: Dict[str, str] = field(default_factory=dict)

    # Maximum number of callback failures to keep (0 = unlimited)
    diagnostics_limit: int = 100

    def __post_init__(self):
        prefix = '/' + self.admin_prefix.strip('/')
        if prefix == '/':
            raise ValueError("admin_prefix must not be the root path")
        self.admin_prefix = prefix

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MockConfig':
        """Create MockConfig from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'MockConfig':
        """
        Load configuration from a YAML file.

        The file may hold the settings at top level or under a ``server`` key.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the YAML document is not a mapping
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {path}, found {type(data).__name__}")

        return cls.from_dict(data.get('server', data))

    def merge(self, overrides: Optional[Dict[str, Any]] = None) -> 'MockConfig':
        """Return a copy with non-None ``overrides`` applied."""
        data = asdict(self)
        data.update({k: v for k, v in (overrides or {}).items() if v is not None})
        return MockConfig.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
