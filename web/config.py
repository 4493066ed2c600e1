"""
Tracemark — Configuration

All settings are read from environment variables.
In development, values are loaded from a .env file in the project root.
In production, set these as environment variables on the host.

Usage:
    from web.config import settings
    print(settings.watermark_overrides())
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root (two levels up from web/)
_env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)


def _parse_tokens(raw: str) -> dict[str, str]:
    """Parse "token=viewer_id,token2=viewer_id2" into a mapping."""
    tokens = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        token, sep, viewer_id = pair.partition("=")
        if not sep or not token.strip() or not viewer_id.strip():
            raise ValueError(
                f"Malformed API_TOKENS entry {pair!r}. Expected token=viewer_id."
            )
        tokens[token.strip()] = viewer_id.strip()
    return tokens


class Settings:
    # Server
    host: str        = os.getenv("HOST", "0.0.0.0")
    port: int        = int(os.getenv("PORT", "8000"))
    debug: bool      = os.getenv("DEBUG", "false").lower() == "true"

    # Logging
    log_level: str   = os.getenv("LOG_LEVEL", "info").lower()

    # File uploads, default 20 MB
    max_upload_mb: int    = int(os.getenv("MAX_UPLOAD_MB", "20"))
    max_upload_bytes: int = max_upload_mb * 1024 * 1024

    # Original screenshots live at <storage_dir>/<child_id>/<screenshot_id>.<ext>
    storage_dir: Path     = Path(os.getenv("STORAGE_DIR", "storage"))
    # JSON object: child_id -> list of viewer ids allowed to see that child
    family_registry: Path = Path(os.getenv("FAMILY_REGISTRY", "families.json"))

    # Bearer tokens: comma-separated token=viewer_id pairs
    api_tokens: dict = _parse_tokens(os.getenv("API_TOKENS", ""))

    # CORS: comma-separated allowed origins, default none
    cors_origins: list = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "").split(",")
        if o.strip()
    ]

    # Watermark codec. Unset values fall back to the codec defaults.
    watermark_secret_key: str     = os.getenv("WATERMARK_SECRET_KEY", "")
    watermark_strength: str       = os.getenv("WATERMARK_STRENGTH", "")
    watermark_repetitions: str    = os.getenv("WATERMARK_REPETITIONS", "")
    watermark_min_image_size: str = os.getenv("WATERMARK_MIN_IMAGE_SIZE", "")
    watermark_output_quality: str = os.getenv("WATERMARK_OUTPUT_QUALITY", "")

    # App metadata
    app_version: str = "0.1.0"
    app_title: str   = "Tracemark — Forensic Watermark Service"

    def watermark_overrides(self) -> dict:
        """Codec config overrides for every value set in the environment."""
        overrides = {}
        if self.watermark_secret_key:
            overrides["secret_key"] = self.watermark_secret_key
        if self.watermark_strength:
            overrides["strength"] = float(self.watermark_strength)
        if self.watermark_repetitions:
            overrides["repetitions"] = int(self.watermark_repetitions)
        if self.watermark_min_image_size:
            overrides["min_image_size"] = int(self.watermark_min_image_size)
        if self.watermark_output_quality:
            overrides["output_quality"] = int(self.watermark_output_quality)
        return overrides


settings = Settings()
