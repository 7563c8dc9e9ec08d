from __future__ import annotations

import os
import json
import math
import sys
from dataclasses import dataclass
from typing import Optional


def _debug_requested() -> bool:
    return "--console-debug" in sys.argv or os.environ.get("CONSOLE_DEBUG") == "1"


# Debug flag: default off. Enable via CLI arg "--console-debug" or env CONSOLE_DEBUG=1.
# Re-read by load_console_config so a .env loaded after import still applies.
DEBUG = _debug_requested()


def dlog(label: str, data):
    if not DEBUG:
        return
    try:
        printable = data if isinstance(data, str) else json.dumps(data, indent=2, ensure_ascii=False, default=str)
    except Exception:
        printable = str(data)
    print(f"[console-debug] {label}: {printable}")


DEFAULT_BASE_URL = "http://127.0.0.1:8080"
DEFAULT_API_PREFIX = "/admin/api"
DEFAULT_TIMEOUT = 15.0
DEFAULT_TOAST_SECONDS = 2.6
DEFAULT_DEVICE_PAGE_SIZE = 10
DEFAULT_TOKEN_PAGE_SIZE = 20


@dataclass(frozen=True)
class ConsoleConfig:
    base_url: str = DEFAULT_BASE_URL
    api_prefix: str = DEFAULT_API_PREFIX
    timeout: float = DEFAULT_TIMEOUT
    toast_seconds: float = DEFAULT_TOAST_SECONDS
    device_page_size: int = DEFAULT_DEVICE_PAGE_SIZE
    token_page_size: int = DEFAULT_TOKEN_PAGE_SIZE


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        dlog("console_config_invalid", f"{name}={raw!r} is not a number; using {default}")
        return default
    if not math.isfinite(value) or value <= 0:
        dlog("console_config_invalid", f"{name}={raw!r} must be a positive finite number; using {default}")
        return default
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        dlog("console_config_invalid", f"{name}={raw!r} is not an integer; using {default}")
        return default
    if value < 1:
        dlog("console_config_invalid", f"{name}={raw!r} must be at least 1; using {default}")
        return default
    return value


def _normalize_prefix(raw: Optional[str]) -> str:
    if raw is None:
        return DEFAULT_API_PREFIX
    prefix = raw.strip().rstrip("/")
    if prefix and not prefix.startswith("/"):
        prefix = "/" + prefix
    return prefix


def load_console_config() -> ConsoleConfig:
    """Read console settings from env."""
    global DEBUG
    DEBUG = DEBUG or _debug_requested()
    cfg = ConsoleConfig(
        base_url=(os.environ.get("CONSOLE_BASE_URL") or DEFAULT_BASE_URL).strip().rstrip("/"),
        api_prefix=_normalize_prefix(os.environ.get("CONSOLE_API_PREFIX")),
        timeout=_float_env("CONSOLE_TIMEOUT", DEFAULT_TIMEOUT),
        toast_seconds=_float_env("CONSOLE_TOAST_SECONDS", DEFAULT_TOAST_SECONDS),
        device_page_size=_int_env("CONSOLE_DEVICE_PAGE_SIZE", DEFAULT_DEVICE_PAGE_SIZE),
        token_page_size=_int_env("CONSOLE_TOKEN_PAGE_SIZE", DEFAULT_TOKEN_PAGE_SIZE),
    )
    dlog(
        "console_config",
        {
            "base_url": cfg.base_url,
            "api_prefix": cfg.api_prefix,
            "timeout": cfg.timeout,
            "toast_seconds": cfg.toast_seconds,
            "device_page_size": cfg.device_page_size,
            "token_page_size": cfg.token_page_size,
        },
    )
    return cfg
