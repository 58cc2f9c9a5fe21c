import logging
import re
from typing import Iterable


# header_b64 "." "" "." signature_b64
_COMPACT_TOKEN = re.compile(r"\b([A-Za-z0-9_-]{8,})\.\.[A-Za-z0-9_-]+")
_SECRET_FIELDS = re.compile(
    r"\b(secret|password|key|sk)(_b64)?=\S+", re.IGNORECASE
)


def redact(msg: str) -> str:
    # keep the header segment, mask the signature
    msg = _COMPACT_TOKEN.sub(r"\1..***", msg)
    return _SECRET_FIELDS.sub(lambda m: f"{m.group(1)}{m.group(2) or ''}=***", msg)


class RedactingFilter(logging.Filter):
    """Redact token signatures and secret-bearing fields from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        msg = redact(str(record.getMessage()))
        record.msg = msg
        record.args = None
        return True


def setup_logging(
    level: int = logging.INFO,
    loggers: Iterable[str] = ("detached_jws", "detached_jws_cli"),
) -> None:
    logging.basicConfig(level=level)
    f = RedactingFilter()
    for name in loggers:
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.addFilter(f)
