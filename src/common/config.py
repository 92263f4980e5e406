"""
Configuration loader for the converse server.

Loads settings from config.yaml. Every field has a default, so a missing
file yields a fully usable configuration.
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

# Keys of the nested ``logging:`` section that map onto flat Config fields
_LOGGING_KEYS = {
    "level": "log_level",
    "enable_pretty_print": "enable_pretty_print",
    "save_to_file": "save_to_file",
    "log_file_path": "log_file_path",
    "max_log_file_size": "max_log_file_size",
    "backup_count": "backup_count",
}


class ServerConfig(BaseModel):
    """Identity the server reports during the initialize handshake."""

    name: str = Field(default="converse", description="Server name reported in serverInfo")
    version: str = Field(default="0.1.0", description="Server version reported in serverInfo")
    instructions: Optional[str] = Field(
        default=None, description="Optional usage hints returned from initialize"
    )


class TransportConfig(BaseModel):
    """Configuration for the transport the server listens on."""

    type: Literal["stdio", "http"] = Field(default="stdio", description="Transport type")
    host: str = Field(default="127.0.0.1", description="Host to bind the HTTP transport to")
    port: int = Field(default=8000, description="Port to bind the HTTP transport to")


class Config(BaseModel):
    """Main configuration object."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    log_level: str = Field(default="INFO", description="Logging level")
    enable_pretty_print: bool = Field(
        default=False, description="Enable custom pretty print for debugging"
    )
    save_to_file: bool = Field(default=False, description="Save logs to file")
    log_file_path: str = Field(default="server.log", description="Log file path (relative to root)")
    max_log_file_size: int = Field(
        default=10485760, description="Max log file size in bytes (10MB)"
    )
    backup_count: int = Field(default=5, description="Number of backup log files to keep")


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config.yaml file. Defaults to ./config.yaml

    Returns:
        Loaded configuration object
    """
    if config_path is None:
        config_path = Path("config.yaml")

    config_data: Dict[str, Any] = {}

    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    # Handle nested logging configuration
    logging_config = config_data.pop("logging", None) or {}
    for yaml_key, field_name in _LOGGING_KEYS.items():
        if yaml_key in logging_config:
            config_data[field_name] = logging_config[yaml_key]

    return Config(**config_data)
