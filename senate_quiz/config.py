import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union


def _parse_env_line(line: str) -> Optional[tuple[str, str]]:
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if key.startswith("export "):
        key = key[len("export "):].strip()
    if not key:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return key, value[1:-1]
    # unquoted values may carry a trailing comment
    if " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return key, value


def read_env_file(path: Union[str, Path]) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for raw_line in Path(path).read_text(encoding="utf-8").splitlines():
        parsed = _parse_env_line(raw_line)
        if parsed:
            values[parsed[0]] = parsed[1]
    return values


def load_env(path: Union[str, Path] = ".env") -> None:
    """Copy ``KEY=value`` pairs from ``path`` into the environment.

    Variables already set in the process win over the file.
    """
    env_path = Path(path)
    if not env_path.is_file():
        return
    try:
        values = read_env_file(env_path)
    except OSError as exc:  # noqa: BLE001
        logging.getLogger("senate_quiz").warning("Could not read %s: %s", env_path, exc)
        return
    for key, value in values.items():
        os.environ.setdefault(key, value)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _optional_int_env(name: str) -> Optional[int]:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw else None
    except ValueError:
        return None


load_env()

TELEGRAM_BOT_TOKEN = os.getenv("BOT_TOKEN", "")
ROSTER_SOURCE = os.getenv("ROSTER_SOURCE", "senators.json")
PORTRAIT_BASE = os.getenv("PORTRAIT_BASE", "assets/")
QUESTION_COUNT = max(1, _int_env("QUESTION_COUNT", 20))
PORTRAIT_CONCURRENCY = max(1, _int_env("PORTRAIT_CONCURRENCY", 4))
QUIZ_SEED = _optional_int_env("QUIZ_SEED")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger("senate_quiz")


def validate_settings() -> None:
    if not TELEGRAM_BOT_TOKEN:
        raise RuntimeError("BOT_TOKEN is not set")
    if not ROSTER_SOURCE:
        raise RuntimeError("ROSTER_SOURCE is empty; point it at a senators JSON file or URL.")
