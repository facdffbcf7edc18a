# artledger/config.py
"""
Registry configuration.

Loaded from YAML:

    administrator: admin
    platform_fee_rate: 25
    state_dir: ./ledger
    signing_key: ./ledger/operator.pem
    log_level: INFO
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import InvalidArgument
from .fees import DEFAULT_FEE_RATE, validate_fee_rate


@dataclass
class RegistryConfig:
    """
    Settings for opening a TransactionEngine.

    Attributes:
        administrator: Identity allowed to change the fee; receives fees
        platform_fee_rate: Initial fee rate in tenths of a percent
        state_dir: Directory holding the persisted event log (None = memory only)
        signing_key: PEM private key used to sign events (None = unsigned)
        log_level: Root logging level name
    """
    administrator: str
    platform_fee_rate: int = DEFAULT_FEE_RATE
    state_dir: Optional[Path] = None
    signing_key: Optional[Path] = None
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Path = None) -> "RegistryConfig":
        if not isinstance(data, dict):
            raise InvalidArgument("Config must be a mapping")
        administrator = data.get("administrator")
        if not administrator:
            raise InvalidArgument("Config is missing 'administrator'")

        def _path(value) -> Optional[Path]:
            if not value:
                return None
            path = Path(value)
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            return path

        log_level = str(data.get("log_level", "INFO")).upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise InvalidArgument(f"Unknown log level: {log_level}")

        return cls(
            administrator=str(administrator),
            platform_fee_rate=validate_fee_rate(data.get("platform_fee_rate", DEFAULT_FEE_RATE)),
            state_dir=_path(data.get("state_dir")),
            signing_key=_path(data.get("signing_key")),
            log_level=log_level,
        )

    @classmethod
    def from_yaml(cls, yaml_content: str, base_dir: Path = None) -> "RegistryConfig":
        """Parse config from a YAML string."""
        data = yaml.safe_load(yaml_content) or {}
        return cls.from_dict(data, base_dir=base_dir)

    @classmethod
    def from_file(cls, path: Path | str) -> "RegistryConfig":
        """Load config from a YAML file. Relative paths resolve against its directory."""
        path = Path(path)
        with open(path, "r") as f:
            return cls.from_yaml(f.read(), base_dir=path.parent)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "administrator": self.administrator,
            "platform_fee_rate": self.platform_fee_rate,
            "log_level": self.log_level,
        }
        if self.state_dir:
            data["state_dir"] = str(self.state_dir)
        if self.signing_key:
            data["signing_key"] = str(self.signing_key)
        return data
