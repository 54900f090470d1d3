"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "printshop.sqlite3"
DEFAULT_SHOP_NAME = "Print Shop"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.warning(f"[Config] Unrecognised boolean {raw!r}, using {default}")
    return default


@dataclass(slots=True)
class Settings:
    database_path: str = DEFAULT_DATABASE
    log_level: str = "INFO"
    load_demo_data: bool = True
    shop_name: str = DEFAULT_SHOP_NAME

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, *, dotenv_path: Optional[str] = None
    ) -> "Settings":
        """Build settings from ``environ`` (default: ``os.environ`` plus a local ``.env``).

        Variables already present in the environment win over the ``.env`` file.
        """

        if environ is None:
            load_dotenv(dotenv_path=dotenv_path, override=False)
            environ = os.environ
        return cls(
            database_path=(environ.get("PRINTSHOP_DATABASE") or DEFAULT_DATABASE).strip(),
            log_level=(environ.get("PRINTSHOP_LOG_LEVEL") or "INFO").strip().upper(),
            load_demo_data=_env_bool(environ.get("PRINTSHOP_DEMO_DATA"), True),
            shop_name=(environ.get("PRINTSHOP_SHOP_NAME") or DEFAULT_SHOP_NAME).strip(),
        )


def configure_logging(settings: Settings) -> None:
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("printshop").setLevel(level)


__all__ = ["Settings", "configure_logging", "DEFAULT_DATABASE", "DEFAULT_SHOP_NAME"]
