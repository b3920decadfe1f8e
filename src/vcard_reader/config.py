from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from .writer import WriterOptions

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("local") / "vcard-reader.toml"

DEFAULT_CONF = """# vcard-reader local config (TOML)
[writer]
# `vcard-reader convert` ignores this and needs --embed-local
embed_local_images = true
embed_remote_images = false
# Outlook does not understand escaped commas
compatibility_escaping = false
product_id = ""
fetch_timeout = 10.0
"""

_BOOL_KEYS = ("embed_local_images", "embed_remote_images", "compatibility_escaping")


def ensure_config(path: Path | None = None) -> Path:
    """Write the default config file unless one already exists."""
    conf = Path(path or DEFAULT_CONFIG_PATH)
    conf.parent.mkdir(parents=True, exist_ok=True)
    if not conf.exists():
        conf.write_text(DEFAULT_CONF, encoding="utf-8")
        logger.info("created %s", conf)
    return conf


def _apply(options: WriterOptions, table: dict[str, Any]) -> None:
    for key in _BOOL_KEYS:
        if key in table:
            setattr(options, key, bool(table[key]))
    if "product_id" in table:
        options.product_id = str(table["product_id"])
    if "fetch_timeout" in table:
        options.fetch_timeout = float(table["fetch_timeout"])


def load_writer_options(path: Path | None = None) -> WriterOptions:
    """Writer options from the ``[writer]`` table; defaults when absent or malformed."""
    options = WriterOptions()
    conf = Path(path or DEFAULT_CONFIG_PATH)
    if not conf.exists():
        return options

    try:
        data = tomllib.loads(conf.read_text(encoding="utf-8"))
        table = data.get("writer", {})
        if not isinstance(table, dict):
            raise ValueError("[writer] must be a table")
        _apply(options, table)
    except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError) as exc:
        logger.warning("%s is malformed, using default writer options: %s", conf, exc)
        return WriterOptions()

    return options
