"""
Private-key storage in the orchestrator .env file.

The file is treated as an ordered list of raw lines. Reads always go to
disk; writes touch only the CRE_ETH_PRIVATE_KEY line (first match wins)
and leave every other line, comment and duplicate as it was.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import EnvFileError, ValidationError
from .runtime import DEFAULT_TARGET, OrchestratorConfig

logger = logging.getLogger(__name__)

PRIVATE_KEY_VAR = "CRE_ETH_PRIVATE_KEY"
TARGET_VAR = "CRE_TARGET"

# Values shipped in example .env files
PLACEHOLDER_MARKERS = ("your_", "your-eth-private-key", "placeholder")

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


@dataclass
class PrivateKeyStatus:
    """Whether the .env file holds a usable private key."""

    configured: bool
    path: Path
    error: str | None = None

    def to_dict(self) -> dict:
        data: dict = {"configured": self.configured}
        if self.error:
            data["error"] = self.error
        else:
            data["path"] = str(self.path)
        return data


def _line_value(line: str, var: str) -> str | None:
    """Return the value if `line` assigns `var`, else None."""
    stripped = line.strip()
    prefix = f"{var}="
    if stripped.startswith(prefix):
        return stripped[len(prefix):]
    return None


def _find_line(lines: list[str], var: str) -> int | None:
    for i, line in enumerate(lines):
        if _line_value(line, var) is not None:
            return i
    return None


def is_placeholder(value: str) -> bool:
    return any(marker in value for marker in PLACEHOLDER_MARKERS)


def read_private_key_status(env_file: Path) -> PrivateKeyStatus:
    """
    Check whether a real private key is stored.

    A missing or unreadable file reports configured=False instead of
    raising.
    """
    try:
        text = env_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Could not read %s: %s", env_file, e)
        return PrivateKeyStatus(
            configured=False,
            path=env_file,
            error="Could not read .env file",
        )

    lines = text.splitlines()
    index = _find_line(lines, PRIVATE_KEY_VAR)
    if index is None:
        return PrivateKeyStatus(configured=False, path=env_file)

    value = (_line_value(lines[index], PRIVATE_KEY_VAR) or "").strip()
    configured = bool(value) and not is_placeholder(value)
    return PrivateKeyStatus(configured=configured, path=env_file)


def clean_private_key(raw: str | None) -> str:
    """
    Normalize a user-supplied private key.

    Strips whitespace and an optional 0x prefix.

    Raises:
        ValidationError: If no key is given or it is not 64 hex characters
    """
    if raw is None or not str(raw).strip():
        raise ValidationError("Missing privateKey")

    key = str(raw).strip()
    if key.startswith("0x"):
        key = key[2:].strip()

    if not _HEX_KEY.match(key):
        raise ValidationError(
            "Invalid private key format. Must be 64 hexadecimal characters."
        )
    return key


def _write_lines(env_file: Path, lines: list[str]) -> None:
    try:
        with open(env_file, "w", encoding="utf-8", newline="") as f:
            f.write("\n".join(lines) + "\n")
    except OSError as e:
        raise EnvFileError(str(e)) from e


def write_private_key(env_file: Path, raw_key: str | None) -> str:
    """
    Store a private key in the .env file.

    The key is validated before the file is touched. The first
    CRE_ETH_PRIVATE_KEY line is replaced (or one is appended), a default
    CRE_TARGET is added if the file has none, and all other lines are kept.

    Args:
        env_file: Path of the .env file (created if absent)
        raw_key: Key as supplied by the caller

    Returns:
        The cleaned key that was written

    Raises:
        ValidationError: If the key is missing or malformed
        EnvFileError: If the file cannot be read or written
    """
    key = clean_private_key(raw_key)

    try:
        lines = env_file.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        lines = []
    except (OSError, UnicodeDecodeError) as e:
        raise EnvFileError(str(e)) from e

    key_line = f"{PRIVATE_KEY_VAR}={key}"
    index = _find_line(lines, PRIVATE_KEY_VAR)
    if index is None:
        lines.append(key_line)
    else:
        lines[index] = key_line

    if _find_line(lines, TARGET_VAR) is None:
        lines.append(f"{TARGET_VAR}={DEFAULT_TARGET}")

    _write_lines(env_file, lines)
    logger.info("Private key stored in %s", env_file)
    return key


def ensure_env_file(config: OrchestratorConfig) -> bool:
    """
    Create the orchestrator .env file if it does not exist yet.

    Seeds it from CRE_ETH_PRIVATE_KEY / CRE_TARGET when those were set in
    the server's environment. An existing file is never modified.

    Returns:
        True if a new file was written
    """
    env_file = config.env_file
    if env_file.exists():
        return False

    if not config.orchestrator_root.is_dir():
        logger.warning(
            "Orchestrator directory %s not found, skipping .env bootstrap",
            config.orchestrator_root,
        )
        return False

    key = (config.bootstrap_private_key or "").strip()
    if key.startswith("0x"):
        key = key[2:]
    target = config.bootstrap_target or DEFAULT_TARGET

    _write_lines(env_file, [f"{PRIVATE_KEY_VAR}={key}", f"{TARGET_VAR}={target}"])
    logger.info("Created %s", env_file)
    return True
