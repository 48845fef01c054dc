"""
SOLE RESPONSIBILITY: Client-side configuration, i.e. finding the MicroTask server
the CLI should talk to.
"""

import os
import json
from pathlib import Path
from typing import Optional

import typer


DEFAULT_SERVER_URL = "http://localhost:8080"
SERVER_URL_ENV = "MICROTASK_SERVER_URL"


def get_cli_config_file() -> Path:
    return Path(typer.get_app_dir("microtask")) / "config.json"


def _url_from_file(path: Path) -> Optional[str]:
    if not path.exists():
        return None
    try:
        with open(path) as f:
            return json.load(f).get("server_url")
    except (OSError, json.JSONDecodeError, AttributeError):
        # A broken client config falls back to the default server
        return None


def get_server_url() -> str:
    """
    Server base URL without a trailing slash.
    Priority: MICROTASK_SERVER_URL > CLI config file ("server_url") > localhost:8080
    """
    url = os.environ.get(SERVER_URL_ENV) or _url_from_file(get_cli_config_file()) or DEFAULT_SERVER_URL
    return url.rstrip("/")
