"""
Runtime configuration.

- Reads the key URI, its password and the log level from the environment,
  after loading a .env file if one exists.
- Validates them into a KeySettings model.
"""

import logging
import os
from typing import Optional
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, field_validator

from keysign.crypto.private_key import PrivateKey

# --- Environment variable names ---

ENV_KEY_URI = "KEYSIGN_KEY_URI"
ENV_KEY_PASSWORD = "KEYSIGN_KEY_PASSWORD"
ENV_LOG_LEVEL = "KEYSIGN_LOG_LEVEL"


class KeySettings(BaseModel):
    """
    Where to find the signing key and how loudly to log.
    { "key_uri": "file:certs/server_private_key.pem", "key_password": "", "log_level": "WARNING" }
    """
    key_uri: str = ""
    key_password: str = ""    # "" means the PEM file is not encrypted
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: '{value}'")
        return level

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)

    def open_key(self, log: Optional[logging.Logger] = None) -> PrivateKey:
        """Builds a PrivateKey from the configured URI (empty if unset)."""
        if not self.key_uri:
            return PrivateKey(log=log)
        return PrivateKey(self.key_uri, self.key_password, log=log)


def load_settings(env_file: Optional[str] = None) -> KeySettings:
    """
    Loads settings from the environment.

    Args:
        env_file: Path to a .env file. When None, the nearest .env in the
            current directory or one of its parents is used.

    Raises:
        pydantic.ValidationError: If a value is invalid (e.g. log level).
    """
    # Variables already set in the process environment take precedence
    load_dotenv(dotenv_path=env_file or find_dotenv(usecwd=True))

    return KeySettings(
        key_uri=os.getenv(ENV_KEY_URI, ""),
        key_password=os.getenv(ENV_KEY_PASSWORD, ""),
        log_level=os.getenv(ENV_LOG_LEVEL, "WARNING"),
    )
