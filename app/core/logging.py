"""
Logging setup.

Every module logs through ``logging.getLogger(__name__)``; this only wires
the root handler once per process.
"""
import logging

_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the root logger."""
    root = logging.getLogger()
    # Avoid duplicate handlers when the app module is reloaded in tests.
    if not any(getattr(h, "_bodymind", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._bodymind = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level.upper())
