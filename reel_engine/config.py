"""
Configuration module for the Reel Engine.

Handles:
- Environment variable loading (.env via python-dotenv)
- Path configuration (MEDIA_DIR, REELS_SUBDIR, TMP_SUBDIR)
- Encoder and fetch settings (FFMPEG_PATH, FFMPEG_TIMEOUT, FETCH_TIMEOUT)
- API key and public URL configuration for API responses
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .timing import TransitionPolicy

load_dotenv()


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


TRUTHY = ("1", "true", "yes", "on")


class Config:
    """
    Centralized configuration for the reel engine.

    All paths and settings are configurable via environment variables
    with sensible defaults for local development.
    """

    STORAGE_SUBDIR: str = "storage"
    TRANSITION_POLICIES: tuple = tuple(p.value for p in TransitionPolicy)

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        media_dir: Optional[Path] = None,
        reels_subdir: Optional[str] = None,
        tmp_subdir: Optional[str] = None,
        public_base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        require_api_key: Optional[bool] = None,
        ffmpeg_path: Optional[str] = None,
        ffmpeg_timeout: Optional[float] = None,
        fetch_timeout: Optional[float] = None,
        logo_path: Optional[Path] = None,
        transition_policy: Optional[str] = None,
    ):
        """
        Initialize configuration.

        Args:
            base_dir: Base directory for relative paths. Defaults to current working directory.
            media_dir: Root folder for stored and generated media. Overrides MEDIA_DIR env var.
            reels_subdir: Subfolder of media_dir for reels. Overrides REELS_SUBDIR env var.
            tmp_subdir: Subfolder of media_dir for job workspaces. Overrides TMP_SUBDIR env var.
            public_base_url: Public URL base for generated media URLs. Overrides PUBLIC_BASE_URL env var.
            api_key: Expected X-API-Key value. Overrides API_KEY env var.
            require_api_key: Whether endpoints check the API key. Overrides REQUIRE_API_KEY env var.
            ffmpeg_path: Encoder binary. Overrides FFMPEG_PATH / IMAGEIO_FFMPEG_EXE env vars.
            ffmpeg_timeout: Seconds before an encoder run is abandoned. Overrides FFMPEG_TIMEOUT.
            fetch_timeout: Seconds before a remote download is abandoned. Overrides FETCH_TIMEOUT.
            logo_path: Branding logo (SVG) for image overlays. Overrides LOGO_PATH env var.
            transition_policy: "reject" or "clamp" for too-short slides. Overrides TRANSITION_POLICY.
        """
        self.base_dir = base_dir or Path(os.getcwd())

        self.media_dir = self._resolve_path(
            media_dir,
            os.environ.get("MEDIA_DIR"),
            self.base_dir / "media"
        )

        self.reels_subdir = reels_subdir or os.environ.get("REELS_SUBDIR") or "reels"
        self.tmp_subdir = tmp_subdir or os.environ.get("TMP_SUBDIR") or "tmp"

        self.logo_path = self._resolve_path(
            logo_path,
            os.environ.get("LOGO_PATH"),
            self.base_dir / "Logo.svg"
        )

        self.ffmpeg_path = (
            ffmpeg_path
            or os.environ.get("FFMPEG_PATH")
            or os.environ.get("IMAGEIO_FFMPEG_EXE")
            or "ffmpeg"
        )
        self.ffmpeg_timeout = float(
            ffmpeg_timeout if ffmpeg_timeout is not None
            else os.environ.get("FFMPEG_TIMEOUT", 600)
        )
        self.fetch_timeout = float(
            fetch_timeout if fetch_timeout is not None
            else os.environ.get("FETCH_TIMEOUT", 30)
        )

        self.api_key = api_key or os.environ.get("API_KEY") or "change-me"
        if require_api_key is None:
            require_api_key = os.environ.get("REQUIRE_API_KEY", "true").lower() in TRUTHY
        self.require_api_key = require_api_key

        self.transition_policy = (
            transition_policy
            or os.environ.get("TRANSITION_POLICY")
            or "reject"
        ).lower()

        # Public URL for API responses
        self.public_base_url = (
            public_base_url
            or os.environ.get("PUBLIC_BASE_URL")
            or "http://localhost:8080"
        )
        # Ensure no trailing slash
        self.public_base_url = self.public_base_url.rstrip("/")

    def _resolve_path(
        self,
        explicit: Optional[Path],
        env_value: Optional[str],
        default: Path
    ) -> Path:
        """Resolve a path from explicit value, env var, or default."""
        if explicit is not None:
            return Path(explicit)
        if env_value is not None:
            return Path(env_value)
        return default

    @property
    def storage_dir(self) -> Path:
        """Folder holding uploaded media and single-asset outputs."""
        return self.media_dir / self.STORAGE_SUBDIR

    @property
    def reels_dir(self) -> Path:
        return self.media_dir / self.reels_subdir

    @property
    def tmp_dir(self) -> Path:
        return self.media_dir / self.tmp_subdir

    @property
    def policy(self) -> TransitionPolicy:
        """
        Transition policy as an enum member.

        Raises:
            ConfigError: If TRANSITION_POLICY names no known policy
        """
        try:
            return TransitionPolicy(self.transition_policy)
        except ValueError:
            available = ", ".join(self.TRANSITION_POLICIES)
            raise ConfigError(
                f"Unknown transition policy '{self.transition_policy}'. Available: {available}"
            ) from None

    def public_url(self, subdir: str, filename: str) -> str:
        """Build the public URL of a file served from the media mount."""
        return f"{self.public_base_url}/media/{subdir}/{filename}"

    def validate(self) -> None:
        """
        Validate settings that cannot be checked lazily.

        Raises:
            ConfigError: If any setting is invalid
        """
        errors = []

        try:
            self.policy
        except ConfigError as e:
            errors.append(str(e))

        if self.ffmpeg_timeout <= 0:
            errors.append(f"FFMPEG_TIMEOUT must be positive, got {self.ffmpeg_timeout}")

        if self.fetch_timeout <= 0:
            errors.append(f"FETCH_TIMEOUT must be positive, got {self.fetch_timeout}")

        if errors:
            raise ConfigError("\n".join(errors))

    def ensure_dirs(self) -> None:
        """Create media, storage, reels and tmp directories if they don't exist."""
        for directory in self.media_dirs():
            directory.mkdir(parents=True, exist_ok=True)

    def media_dirs(self) -> List[Path]:
        return [self.media_dir, self.storage_dir, self.reels_dir, self.tmp_dir]


# Global config instance (lazy-loaded)
_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global Config instance.

    Creates a new instance on first call, reuses it thereafter.
    For testing, use init_config() to replace it.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def init_config(**kwargs) -> Config:
    """
    Initialize and return a new global Config instance.

    Use this to override the default configuration.
    """
    global _config
    _config = Config(**kwargs)
    return _config
