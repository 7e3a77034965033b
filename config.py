"""
MathGPT Photosolver — Configuration constants and logging setup.
"""

import logging
import os

FREE_TRIAL_LIMIT = 3
FALLBACK_VARIABLE = "x"
OCR_LANGUAGE = "eng"

_DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")
DATA_FILE = os.environ.get("MATHGPT_DATA_FILE") or os.path.join(_DATA_DIR, "accounts.json")

TESSERACT_CMD = os.environ.get("TESSERACT_CMD", "")

LOG_LEVEL = os.environ.get("MATHGPT_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Attach a single stream handler to the root logger (idempotent)."""
    root = logging.getLogger()
    if not any(getattr(h, "_mathgpt", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._mathgpt = True
        root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))
