import logging

from fastapi import FastAPI

from coachbook.api.v1.availability import router as availability_router
from coachbook.core.config import settings

CONTEXT_KEYS = ("coach_id", "date", "status", "count", "reason", "error")


class ContextFormatter(logging.Formatter):
    """Appends booking context passed through ``extra=`` to each line."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = [
            f"{key}={getattr(record, key)}"
            for key in CONTEXT_KEYS
            if getattr(record, key, None) not in (None, "")
        ]
        return f"{base} | {' '.join(extras)}" if extras else base


def configure_logging(level: str) -> None:
    stream = logging.StreamHandler()
    stream.setFormatter(ContextFormatter("%(asctime)s %(levelname)s:%(name)s:%(message)s"))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(stream)


configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="Coach Availability", version="1.0.0")
app.include_router(availability_router, prefix="/api/v1", tags=["availability"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
