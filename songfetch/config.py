"""Configuration with JSON file, optional config.yml and env variable support."""

import json
import os
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "SONGFETCH_"

DEFAULT_ALLOWED_URL_PREFIXES = [
    "https://www.youtube.com/",
    "https://youtu.be/",
    "https://soundcloud.com/",
    "https://on.soundcloud.com/",
]


def _find_repo_root(*, start: Path) -> Path:
    """Best-effort repository root discovery.

    Returns the first directory containing `pyproject.toml`, otherwise the
    current working directory.
    """

    try:
        start = start.resolve()
        for p in [start, *start.parents]:
            if (p / "pyproject.toml").exists():
                return p
    except OSError:
        pass

    return Path.cwd()


class SongfetchConfig(BaseSettings):
    """Configuration with JSON file + config.yml + env var support.

    Load order (later overrides earlier):
    1. config.json - base configuration
    2. config.yml - optional repo-root overlay
    3. Environment variables - runtime overrides

    Prefix: SONGFETCH_ (e.g., SONGFETCH_ARTIFACT_TTL_SECONDS)
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=4444)
    allowed_origin: str = Field(
        default="http://localhost:4444",
        min_length=1,
        description="The single trusted origin allowed to call the API cross-origin.",
    )

    # Artifact storage and lifetime
    output_dir: str = Field(default="./downloads")
    artifact_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description=(
            "Grace period after which produced audio files and bundles are deleted, "
            "whether or not they were ever downloaded."
        ),
    )
    purge_on_shutdown: bool = Field(
        default=True,
        description="Delete artifacts with pending deletion timers when the process stops.",
    )

    # Session settings
    session_claim_timeout_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Sessions nobody attached to within this window are dropped.",
    )
    session_sweep_interval_seconds: float = Field(default=60.0, gt=0)
    stream_poll_seconds: float = Field(
        default=1.0,
        gt=0,
        description="How often an idle progress stream checks for client disconnect.",
    )

    # Conversion settings
    ytdlp_binary: str = Field(default="yt-dlp")
    audio_format: str = Field(default="mp3")
    conversion_timeout_seconds: float = Field(default=900.0, gt=0)
    allowed_url_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_URL_PREFIXES)
    )

    log_level: str = Field(default="INFO")

    @property
    def output_path(self) -> Path:
        """Resolved output directory for produced artifacts."""
        return Path(self.output_dir).expanduser().resolve()

    @classmethod
    def from_json_file(cls, config_path: str = "config.json") -> "SongfetchConfig":
        """Load config from JSON + config.yml with env var overrides.

        Args:
            config_path: Path to JSON config file.

        Returns:
            Configured SongfetchConfig instance.
        """
        config_data: dict = {}

        json_path = Path(config_path)
        if json_path.exists():
            with open(json_path) as f:
                config_data = json.load(f)

        # Precedence: config.json < config.yml < env
        repo_root = _find_repo_root(start=Path(__file__))
        cfg_yml = repo_root / "config.yml"
        if cfg_yml.is_file():
            with cfg_yml.open("r", encoding="utf-8") as f:
                yml_data = yaml.safe_load(f) or {}
            if isinstance(yml_data, dict):
                config_data.update(yml_data)

        # Init kwargs beat env vars in pydantic-settings, so drop any key the
        # environment also sets.
        for key in list(config_data):
            if f"{ENV_PREFIX}{key.upper()}" in os.environ:
                del config_data[key]

        return cls(**config_data)
