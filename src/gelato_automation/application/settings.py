"""
Runtime settings with environment variable support.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class GelatoSettings(BaseSettings):
    """Secrets and runtime options read from GELATO_* variables or .env."""

    # Network
    profile: str = Field(default="rinkeby", description="Network profile name")
    config_dir: str = Field(default="configs", description="Directory of profile YAML files")
    rpc_url: Optional[str] = Field(default=None, description="Explicit JSON-RPC endpoint")
    infura_id: Optional[str] = Field(default=None, description="Infura project id for the RPC URL template")

    # Account
    user_pk: Optional[SecretStr] = Field(default=None, description="Private key of the user EOA")

    # Transactions
    receipt_timeout: float = Field(default=180.0, description="Seconds to wait for a receipt")

    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")

    model_config = {
        "env_file": ".env",
        "env_prefix": "GELATO_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @classmethod
    def load_from_file(cls, config_path: Path) -> "GelatoSettings":
        """Load settings from a YAML file; environment variables still apply."""
        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)
