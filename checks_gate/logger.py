import os
import re
from datetime import datetime, timezone


DEFAULT_LOG_PATH = "logs/checks-gate.log"

_SECRET_PATTERNS = (
    (re.compile(r"(?i)authorization\s*[:=]\s*(bearer\s+|token\s+)?[^\s,;'\"}]+"), "Authorization=[REDACTED]"),
    (re.compile(r"(?i)\b(token|bearer)\s+[A-Za-z0-9._\-]+"), r"\1 [REDACTED]"),
    (re.compile(r"\b(ghp|gho|ghs|ghu|ghr|github_pat)_[A-Za-z0-9_]+"), "[REDACTED]"),
)


def _log_path():
    return os.environ.get("CHECKS_GATE_LOG_PATH", DEFAULT_LOG_PATH)


def _redact(text):
    value = str(text)
    for pattern, replacement in _SECRET_PATTERNS:
        value = pattern.sub(replacement, value)
    return re.sub(r"\s+", " ", value).strip()


def format_fields(fields):
    """Renders fields as sorted key=value pairs; list values are comma-joined."""
    parts = []
    for key in sorted(fields):
        value = fields[key]
        if isinstance(value, (list, tuple)):
            value = ",".join(str(item) for item in value) or "-"
        parts.append(f"{key}={value}")
    return " ".join(parts)


def log_event(component: str, message: str, **fields) -> None:
    text = f"{message} {format_fields(fields)}" if fields else message
    line = (
        f"{datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')} "
        f"[{_redact(component)}] {_redact(text)}"
    )
    path = _log_path()
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError:
        return
