from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "FOOTY_HOME"
APP_ENV_DB = "FOOTY_DB"
APP_ENV_UPLOADS = "UPLOADS_ROOT"

_DB_FILENAMES = {
    "production": "old-man-footy.db",
    "test": "test-old-man-footy.db",
}
_DEFAULT_DB_FILENAME = "dev-old-man-footy.db"


def project_root() -> Path:
    """
    Repository/project root directory.
    Contains footy_maint/, tests/, data/ and public/uploads/ in a checkout.
    """
    return Path(__file__).parent.parent.resolve()


def app_home(environ: dict[str, str] | None = None) -> Path:
    """
    Portal home directory (the one holding data/ and public/).
    Override with FOOTY_HOME.
    """
    env = os.environ if environ is None else environ
    if env.get(APP_ENV_HOME):
        return Path(env[APP_ENV_HOME]).expanduser().resolve()
    return project_root()


def data_dir(environ: dict[str, str] | None = None) -> Path:
    return app_home(environ) / "data"


def db_filename(node_env: str) -> str:
    return _DB_FILENAMES.get(node_env, _DEFAULT_DB_FILENAME)


def db_path(node_env: str, environ: dict[str, str] | None = None) -> Path:
    """
    Canonical DB path for the portal.

    Resolution order:
    1. FOOTY_DB env var (explicit override)
    2. <home>/data/<environment-specific file name>
    """
    env = os.environ if environ is None else environ
    if env.get(APP_ENV_DB):
        return Path(env[APP_ENV_DB]).expanduser().resolve()
    return data_dir(environ) / db_filename(node_env)


def uploads_root(environ: dict[str, str] | None = None) -> Path:
    """Uploads root; backups live in its backups/ subdirectory."""
    env = os.environ if environ is None else environ
    if env.get(APP_ENV_UPLOADS):
        raw = Path(env[APP_ENV_UPLOADS]).expanduser()
        if not raw.is_absolute():
            raw = app_home(environ) / raw
        return raw.resolve()
    return (app_home(environ) / "public" / "uploads").resolve()
