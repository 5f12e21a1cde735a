"""
Settings Management
===================

Builds ImapSettings from prefixed environment variables (CLIMAP_HOST,
CLIMAP_USER, ...). Callers that want a .env file honored load it with
python-dotenv before calling settings_from_env().

Settings are held in memory only, never written to disk.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from contracts import (
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    ENV_PREFIX,
    ConfigurationError,
    ImapSettings,
)


def _required(environ: Mapping[str, str], name: str, what: str, strip: bool = True) -> str:
    value = environ.get(name, "")
    if not value.strip():
        raise ConfigurationError(f"No IMAP {what} set in environment! ({name})")
    return value.strip() if strip else value


def _number(environ: Mapping[str, str], name: str, default, kind):
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return kind(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e


def settings_from_env(
    prefix: str = ENV_PREFIX,
    *,
    require_base: bool = False,
    environ: Mapping[str, str] | None = None,
) -> ImapSettings:
    """
    Read connection settings from the environment.

    PRE: <prefix>HOST, <prefix>USER and <prefix>PASS are set and non-empty
    PRE: <prefix>BASE is set when require_base is True

    POST: Returns ImapSettings on success

    ERRORS:
    - ConfigurationError: a required variable is missing, or PORT/TIMEOUT
      is not a number
    """
    if environ is None:
        environ = os.environ

    host = _required(environ, f"{prefix}HOST", "host")
    user = _required(environ, f"{prefix}USER", "user")
    # Passwords may legitimately begin or end with spaces.
    password = _required(environ, f"{prefix}PASS", "password", strip=False)

    base_dir = environ.get(f"{prefix}BASE", "").strip() or None
    if require_base and base_dir is None:
        raise ConfigurationError(
            f"No base directory set for saving messages! ({prefix}BASE)"
        )

    return ImapSettings(
        host=host,
        user=user,
        password=password,
        port=_number(environ, f"{prefix}PORT", DEFAULT_PORT, int),
        tls_server_name=environ.get(f"{prefix}TLS_SERVERNAME", "").strip() or None,
        base_dir=base_dir,
        timeout=_number(environ, f"{prefix}TIMEOUT", DEFAULT_TIMEOUT, float),
    )
