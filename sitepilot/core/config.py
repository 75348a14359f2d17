"""Configuration management with environment overrides."""

import os
import yaml
from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv
import logging

logger = logging.getLogger(__name__)


class GitHubConfig(BaseModel):
    """GitHub configuration."""
    token: Optional[str] = None
    org: str = Field(default="", description="Owner used for bare repository names")
    api_url: str = Field(default="https://api.github.com")
    timeout: float = Field(default=30.0)


class VercelConfig(BaseModel):
    """Vercel configuration."""
    token: Optional[str] = None
    team_id: str = Field(default="")
    deployment_limit: int = Field(default=5, description="Recent preview deployments to scan")
    api_url: str = Field(default="https://api.vercel.com")
    timeout: float = Field(default=15.0)


class GenerationConfig(BaseModel):
    """Code-generation backend configuration."""
    gcp_project: Optional[str] = None
    gcp_location: str = Field(default="us-central1")
    anthropic_api_key: Optional[str] = None
    gemini_flash_model: str = Field(default="gemini-2.0-flash")
    gemini_pro_model: str = Field(default="gemini-2.0-pro")
    claude_model: str = Field(default="claude-opus-4-5-20251101")
    max_output_tokens: int = Field(default=8192)
    temperature: float = Field(default=0.1)


class StorageConfig(BaseModel):
    """Record store configuration."""
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL; in-memory store when unset"
    )


class AuthConfig(BaseModel):
    """Static bearer-token identities."""
    tokens: Dict[str, str] = Field(default_factory=dict, description="Bearer token -> user id")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")
    structured: bool = Field(default=True)


class AppConfig(BaseModel):
    """Application configuration."""
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    vercel: VercelConfig = Field(default_factory=VercelConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load configuration from file with environment overrides.

    Args:
        config_path: Path to config file (default: configs/app.yaml)

    Returns:
        Loaded configuration
    """
    if config_path is None:
        config_path = os.getenv("SITEPILOT_CONFIG", "configs/app.yaml")

    # .env values never override variables already set in the process
    if Path(".env").exists():
        load_dotenv(".env", override=False)

    config_dict = {}

    # Load from file if exists
    if Path(config_path).exists():
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f) or {}
    else:
        logger.debug(f"Config file {config_path} not found, using defaults")

    # Apply environment overrides
    if github_token := os.getenv("GITHUB_TOKEN"):
        config_dict.setdefault("github", {})["token"] = github_token.strip()
    if github_org := os.getenv("GITHUB_ORG"):
        config_dict.setdefault("github", {})["org"] = github_org.strip()
    if vercel_token := os.getenv("VERCEL_TOKEN"):
        config_dict.setdefault("vercel", {})["token"] = vercel_token
    if team_id := os.getenv("VERCEL_TEAM_ID"):
        config_dict.setdefault("vercel", {})["team_id"] = team_id
    if project := os.getenv("GOOGLE_CLOUD_PROJECT"):
        config_dict.setdefault("generation", {})["gcp_project"] = project
    if location := os.getenv("GOOGLE_CLOUD_LOCATION"):
        config_dict.setdefault("generation", {})["gcp_location"] = location
    if anthropic_key := os.getenv("ANTHROPIC_API_KEY"):
        config_dict.setdefault("generation", {})["anthropic_api_key"] = anthropic_key
    if database_url := os.getenv("DATABASE_URL"):
        config_dict.setdefault("storage", {})["database_url"] = database_url
    if level := os.getenv("LOG_LEVEL"):
        config_dict.setdefault("logging", {})["level"] = level.upper()

    return AppConfig(**config_dict)
