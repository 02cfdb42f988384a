import os

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./scorekeeper.db"


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def parse_allowed_origins(raw: str | None) -> list[str]:
    """Split ``ALLOWED_ORIGINS`` and refuse empty or wildcard lists."""
    raw = (raw or "").strip()
    if not raw:
        raise ValueError(
            "ALLOWED_ORIGINS environment variable must be set to a comma-separated "
            "list of trusted origins."
        )
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if not origins:
        raise ValueError("ALLOWED_ORIGINS must contain at least one non-empty origin.")
    if "*" in origins:
        raise ValueError(
            "ALLOWED_ORIGINS cannot include '*' (wildcard). Specify explicit, trusted origins."
        )
    return origins


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))
ALLOW_CREDENTIALS = _env_flag("ALLOW_CREDENTIALS", "true")
AUTO_CREATE_SCHEMA = _env_flag("AUTO_CREATE_SCHEMA")
