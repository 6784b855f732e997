"""Log redaction for enrichment payloads.

Browser tab titles, URLs and visited domains arrive through metadata
resolvers and can end up in log lines via ``%r`` of an event or an
explicit ``tab_url=...``.  :class:`SanitizingFilter` rewrites records so
those values never reach a handler.  Application identifiers and display
names are not considered sensitive.
"""

from __future__ import annotations

import logging
import re
from typing import Final

from focusledger.core.types import EventMetadata

_REDACTED: Final[str] = "[REDACTED]"

# Every enrichment field except the opaque icon reference, plus bare ``url``.
_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset(
    name for name in EventMetadata.model_fields if name != "icon_ref"
) | {"url"}

_KEY_VALUE: Final[re.Pattern[str]] = re.compile(
    r"\b(?P<key>" + "|".join(sorted(map(re.escape, _SENSITIVE_KEYS))) + r")"
    r"\s*[=:]\s*(?P<value>\"[^\"]*\"|'[^']*'|\S+)",
    re.IGNORECASE,
)
_BARE_URL: Final[re.Pattern[str]] = re.compile(r"\bhttps?://[^\s'\"<>]+", re.IGNORECASE)

_LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def redact_message(message: str) -> str:
    """Replace sensitive ``key=value`` / ``key: value`` pairs and bare URLs."""
    message = _KEY_VALUE.sub(lambda m: f"{m.group('key')}={_REDACTED}", message)
    return _BARE_URL.sub(_REDACTED, message)


class SanitizingFilter(logging.Filter):
    """Rewrite each record's message with :func:`redact_message`.

    The message is rendered once with its args, so values interpolated
    via ``%s`` are covered as well.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        rendered = record.getMessage() if record.args else str(record.msg)
        record.msg = redact_message(rendered)
        record.args = None
        return True


def _has_sanitizer(filterer: logging.Filterer) -> bool:
    return any(isinstance(f, SanitizingFilter) for f in filterer.filters)


def install_sanitizing_filter(
    logger: logging.Logger | None = None,
    *,
    handler_level: bool = False,
) -> SanitizingFilter:
    """Attach a :class:`SanitizingFilter` to *logger* (root if ``None``).

    With *handler_level* the filter goes on each of the logger's handlers,
    which also covers records propagated from child loggers.  Targets that
    already carry a sanitizer are left alone.
    """
    filt = SanitizingFilter()
    target = logger or logging.getLogger()
    targets: list[logging.Filterer] = list(target.handlers) if handler_level else [target]
    for t in targets:
        if not _has_sanitizer(t):
            t.addFilter(filt)
    return filt


def configure_logging(level: int = logging.INFO) -> SanitizingFilter:
    """Root logging for command-line use, sanitized at the handler level."""
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    logging.getLogger().setLevel(level)
    return install_sanitizing_filter(handler_level=True)
