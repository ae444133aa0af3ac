import json
import logging
import os

logger = logging.getLogger(__name__)


def read_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def read_json_or_default(path: str, default, expected_type=None):
    """Best-effort read: missing, unreadable or wrongly-shaped files give ``default``."""
    if not os.path.exists(path):
        return default
    try:
        data = read_json(path)
    except (OSError, ValueError) as exc:
        logger.warning(f"⚠️  Could not read {path}: {exc}")
        return default
    if expected_type is not None and not isinstance(data, expected_type):
        logger.warning(f"⚠️  Unexpected document shape in {path}")
        return default
    return data


def write_json_atomic(path: str, data, indent: int | None = 2) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent)
    os.replace(tmp, path)


def write_bytes_atomic(path: str, content: bytes) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    tmp = f"{path}.tmp"
    with open(tmp, "wb") as f:
        f.write(content)
    os.replace(tmp, path)
