import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, NoReturn

from rich.logging import RichHandler

_ICONS = (
    (logging.ERROR, "✖"),
    (logging.WARNING, "⚠"),
    (logging.INFO, "✔"),
)

_EXC_FORMATTER = logging.Formatter()


class LevelIconFilter(logging.Filter):
    """Adds a level icon to each record for console output."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.level_icon = "ℹ"
        for level, icon in _ICONS:
            if record.levelno >= level:
                record.level_icon = icon
                break
        return True


class JsonlFormatter(logging.Formatter):
    """One JSON object per line with a frozen key set."""

    KEYS = (
        "ts",
        "level",
        "name",
        "subsys",
        "channel_id",
        "user_id",
        "msg_id",
        "event",
        "detail",
    )

    def format(self, record: logging.LogRecord) -> str:
        ts = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .astimezone()
            .strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        )

        detail: Any = getattr(record, "detail", None)
        if detail is None:
            detail = record.getMessage()
            if record.exc_info:
                detail = f"{detail}\n{self.formatException(record.exc_info)}"
            elif record.exc_text:
                detail = f"{detail}\n{record.exc_text}"

        payload: Dict[str, Any] = {
            "ts": ts,
            "level": record.levelname,
            "name": record.name,
            "subsys": getattr(record, "subsys", None),
            "channel_id": getattr(record, "channel_id", None),
            "user_id": getattr(record, "user_id", None),
            "msg_id": getattr(record, "msg_id", None),
            "event": getattr(record, "event", None),
            "detail": detail,
        }

        obj = {k: payload[k] for k in self.KEYS if payload.get(k) is not None}
        return json.dumps(obj, ensure_ascii=False, default=str)


class SensitiveDataFilter(logging.Filter):
    """Scrubs secrets from structured extras and from rendered messages."""

    SECRET_KEYS = {
        "DISCORD_TOKEN",
        "GEMINI_API_KEYS",
        "AUTHORIZATION",
        "authorization",
        "api_key",
        "credential",
        "token",
    }

    # Literal secret values registered at startup (API keys, bot token).
    _secret_values: set = set()

    @classmethod
    def register_secrets(cls, values: Iterable[str]) -> None:
        for value in values:
            if value and len(value) >= 8:
                cls._secret_values.add(value)

    def filter(self, record: logging.LogRecord) -> bool:
        for value in list(record.__dict__.values()):
            if isinstance(value, dict):
                self._scrub_dict_inplace(value)
        if self._secret_values:
            self._scrub_message(record)
            if record.exc_info or record.exc_text:
                self._scrub_exception(record)
        return True

    def _scrub_text(self, text: str) -> str:
        for secret in self._secret_values:
            if secret in text:
                text = text.replace(secret, "[REDACTED]")
        return text

    def _scrub_message(self, record: logging.LogRecord) -> None:
        """Scrub the fully rendered message, args included."""
        message = record.getMessage()
        scrubbed = self._scrub_text(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None

    def _scrub_exception(self, record: logging.LogRecord) -> None:
        # A scrubbed traceback is kept as text only; exc_info would re-render the secret.
        text = record.exc_text or _EXC_FORMATTER.formatException(record.exc_info)
        scrubbed = self._scrub_text(text)
        if scrubbed != text:
            record.exc_text = scrubbed
            record.exc_info = None

    def _scrub_dict_inplace(self, obj: Dict[str, Any]) -> None:
        for k in list(obj.keys()):
            v = obj[k]
            if isinstance(v, dict):
                self._scrub_dict_inplace(v)
            elif isinstance(v, str) and k in self.SECRET_KEYS:
                obj[k] = "[REDACTED]"


def _ensure_dir(p: Path) -> None:
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        sys.stderr.write(f"[logging] cannot create log directory for {p}\n")


def init_logging() -> None:
    """Configure dual-sink logging: Rich console + JSONL file."""

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    jsonl_path = Path(os.getenv("LOG_JSONL_PATH", "logs/bot.jsonl"))
    _ensure_dir(jsonl_path)

    pretty = RichHandler(
        rich_tracebacks=True,
        show_path=False,
        show_time=True,
        enable_link_path=False,
        log_time_format="%Y-%m-%d %H:%M:%S",
    )
    pretty.set_name("pretty_handler")
    pretty.addFilter(LevelIconFilter())
    pretty.setFormatter(logging.Formatter(fmt="%(level_icon)s %(message)s"))

    jsonl = logging.FileHandler(str(jsonl_path), encoding="utf-8")
    jsonl.set_name("jsonl_handler")
    jsonl.setFormatter(JsonlFormatter())

    scrubber = SensitiveDataFilter()
    pretty.addFilter(scrubber)
    jsonl.addFilter(scrubber)

    logging.basicConfig(
        handlers=[pretty, jsonl], level=level, force=True, format="%(message)s"
    )

    third_party_level = os.getenv("THIRD_PARTY_LOG_LEVEL", "WARNING").upper()
    for name in ("discord", "openai", "httpx", "aiohttp"):
        logging.getLogger(name).setLevel(third_party_level)

    logging.getLogger(__name__).info(
        "Logging initialized (dual-sink)", extra={"subsys": "logging"}
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def shutdown_logging_and_exit(exit_code: int) -> NoReturn:
    try:
        logging.getLogger(__name__).info("Shutting down", extra={"subsys": "logging"})
    finally:
        logging.shutdown()
        sys.exit(exit_code)
