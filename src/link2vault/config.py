"""Configuration loading and validation."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigError
from .models import TagGroup

PROVIDERS = ("openrouter", "claude", "openai")
DETAIL_LEVELS = ("brief", "standard", "detailed")
STATIC_BACKENDS = ("direct", "firecrawl")
ORGANIZATIONS = ("para", "custom")

DEFAULT_VAULT_URL = "http://localhost:27123"

_DEFAULT_MODELS = {
    "openrouter": "google/gemini-2.0-flash-001",
    "claude": "claude-haiku-4-5-20251001",
    "openai": "gpt-4o-mini",
}

_API_KEY_VARS = {
    "openrouter": "OPENROUTER_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


@dataclass
class Config:
    """Application configuration. Read-only to the pipeline."""

    api_key: str = ""
    llm_provider: str = "openrouter"
    model: str = ""
    vault_url: str = DEFAULT_VAULT_URL
    vault_api_key: str = ""
    vault_organization: str = "custom"
    tag_groups: list[TagGroup] = field(default_factory=list)
    summary_detail_level: str = "standard"
    static_backend: str = "direct"
    firecrawl_api_key: str = ""
    state_dir: Path = field(default_factory=lambda: Path.home() / ".link2vault")
    headless: bool = True
    agent_dir: Optional[Path] = None
    verbose: bool = False

    @property
    def default_model(self) -> str:
        if self.model:
            return self.model
        return _DEFAULT_MODELS.get(self.llm_provider, "")

    def validate(self) -> None:
        """Validate required configuration."""
        if self.llm_provider not in PROVIDERS:
            raise ConfigError(
                f"Unknown LLM provider: {self.llm_provider}. "
                f"Use one of: {', '.join(PROVIDERS)}."
            )
        if not self.api_key:
            raise ConfigError(
                f"{_API_KEY_VARS[self.llm_provider]} is required when using "
                f"the {self.llm_provider} provider. Set it in .env or environment."
            )
        if not self.vault_api_key:
            raise ConfigError(
                "OBSIDIAN_API_KEY is required. Copy it from the Local REST API "
                "plugin settings."
            )
        if not self.vault_url.startswith(("http://", "https://")):
            raise ConfigError(f"Vault URL must start with http:// or https://: {self.vault_url}")
        if self.summary_detail_level not in DETAIL_LEVELS:
            raise ConfigError(
                f"Unknown summary detail level: {self.summary_detail_level}. "
                f"Use one of: {', '.join(DETAIL_LEVELS)}."
            )
        if self.vault_organization not in ORGANIZATIONS:
            raise ConfigError(
                f"Unknown vault organization: {self.vault_organization}. Use 'para' or 'custom'."
            )
        if self.static_backend not in STATIC_BACKENDS:
            raise ConfigError(
                f"Unknown static backend: {self.static_backend}. Use 'direct' or 'firecrawl'."
            )
        if self.static_backend == "firecrawl" and not self.firecrawl_api_key:
            raise ConfigError(
                "FIRECRAWL_API_KEY is required when using the firecrawl backend."
            )
        if self.agent_dir is not None and not self.agent_dir.is_dir():
            raise ConfigError(f"Agent script directory does not exist: {self.agent_dir}")


def parse_tag_groups(raw: str) -> list[TagGroup]:
    """Parse ``name:tag1,tag2;other:tag3`` into TagGroups."""
    groups = []
    for chunk in raw.split(";"):
        if not chunk.strip():
            continue
        name, sep, tags = chunk.partition(":")
        if not sep or not name.strip():
            raise ConfigError(f"Invalid tag group (expected name:tag1,tag2): {chunk!r}")
        groups.append(TagGroup(
            name=name.strip(),
            tags=[t.strip() for t in tags.split(",") if t.strip()],
        ))
    return groups


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def load_config(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    vault_url: Optional[str] = None,
    detail_level: Optional[str] = None,
    static_backend: Optional[str] = None,
    headless: Optional[bool] = None,
    verbose: bool = False,
    validate: bool = True,
) -> Config:
    """Load config from .env and apply CLI overrides."""
    load_dotenv()

    llm_provider = provider or os.getenv("LLM_PROVIDER", "openrouter")
    agent_dir = os.getenv("LINK2VAULT_AGENT_DIR")
    state_dir = os.getenv("LINK2VAULT_STATE_DIR")

    config = Config(
        api_key=os.getenv(_API_KEY_VARS.get(llm_provider, ""), ""),
        llm_provider=llm_provider,
        model=model or os.getenv("LINK2VAULT_MODEL", ""),
        vault_url=(vault_url or os.getenv("OBSIDIAN_API_URL", DEFAULT_VAULT_URL)).rstrip("/"),
        vault_api_key=os.getenv("OBSIDIAN_API_KEY", ""),
        vault_organization=os.getenv("VAULT_ORGANIZATION", "custom"),
        tag_groups=parse_tag_groups(os.getenv("TAG_GROUPS", "")),
        summary_detail_level=detail_level or os.getenv("SUMMARY_DETAIL_LEVEL", "standard"),
        static_backend=static_backend or os.getenv("STATIC_BACKEND", "direct"),
        firecrawl_api_key=os.getenv("FIRECRAWL_API_KEY", ""),
        state_dir=Path(state_dir).expanduser() if state_dir else Path.home() / ".link2vault",
        headless=headless if headless is not None else _env_flag("LINK2VAULT_HEADLESS", True),
        agent_dir=Path(agent_dir).expanduser() if agent_dir else None,
        verbose=verbose,
    )

    if validate:
        config.validate()
    return config
