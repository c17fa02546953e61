from __future__ import annotations

import os
from datetime import datetime, timezone
from functools import lru_cache
from importlib import metadata

DISTRIBUTION_NAME = "strata-portal"


def _resolve_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0+local"


def _resolve_build_time() -> str:
    return os.getenv("BUILD_TIME", datetime.now(timezone.utc).isoformat())


def _resolve_env() -> str:
    return os.getenv("APP_ENV", os.getenv("ENV", "unknown"))


@lru_cache
def get_version_info() -> dict[str, str]:
    return {
        "version": _resolve_version(),
        "gitSha": os.getenv("GIT_SHA", "unknown"),
        "buildTime": _resolve_build_time(),
        "env": _resolve_env(),
    }
