import logging
import re
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

_BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+", re.IGNORECASE)


class SecretRedactingFilter(logging.Filter):
    """Mask bearer tokens and configured API keys before a record is emitted."""

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        self.secrets = [s for s in secrets if s]

    def redact(self, text: str) -> str:
        text = _BEARER_PATTERN.sub(r"\1***", text)
        for secret in self.secrets:
            text = text.replace(secret, "***")
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO", secrets: Iterable[str] = (), monitor_log_file: Optional[str] = None):
    logging.basicConfig(level=level, format=LOG_FORMAT)

    redacting = SecretRedactingFilter(secrets)
    for handler in logging.getLogger().handlers:
        handler.addFilter(redacting)

    if monitor_log_file:
        monitor_logger = logging.getLogger("yijing.monitor")
        handler = logging.FileHandler(monitor_log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        handler.addFilter(redacting)
        monitor_logger.addHandler(handler)
        monitor_logger.propagate = False
