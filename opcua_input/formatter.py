from datetime import datetime, timezone
import itertools
import json
import logging


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def __init__(self):
        super().__init__()
        self._ids = itertools.count(1)

    def format(self, record):
        message = record.getMessage()
        entry = {
            "id": next(self._ids),
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }

        # JSON payloads (e.g. the detected tag list) are merged instead of quoted
        payload = _as_json_object(message)
        if payload is not None:
            entry.update({k: v for k, v in payload.items() if k not in ("id", "level", "logger")})
        else:
            entry["message"] = message

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _as_json_object(message: str):
    text = message.strip()
    if not (text.startswith("{") and text.endswith("}")):
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
