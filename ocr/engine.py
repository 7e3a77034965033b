"""
Recognition engines.

An engine is a single-use worker: it is loaded, given a language model,
initialized, asked to recognize one image, and terminated.  All methods
are blocking; the recognizer runs them off the event loop.
"""

import abc
import io
import logging
from typing import Callable, Optional

import pytesseract
from PIL import Image

import config

logger = logging.getLogger(__name__)

ProgressFn = Callable[[float], None]


class RecognitionEngine(abc.ABC):
    """Interface every recognition engine implements."""

    @abc.abstractmethod
    def load(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def load_language(self, language: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def initialize(self, language: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def recognize(self, image: bytes, progress: ProgressFn) -> str:
        raise NotImplementedError

    @abc.abstractmethod
    def terminate(self) -> None:
        raise NotImplementedError


class TesseractEngine(RecognitionEngine):
    """Tesseract via pytesseract.

    Tesseract gives no intermediate progress, so ``recognize`` reports
    0.0 when it starts and 1.0 when the text is back.
    """

    def __init__(self, tesseract_cmd: Optional[str] = None, psm: int = 6) -> None:
        cmd = tesseract_cmd or config.TESSERACT_CMD
        if cmd:
            pytesseract.pytesseract.tesseract_cmd = cmd
        # Raises TesseractNotFoundError when the binary is missing.
        self.version = pytesseract.get_tesseract_version()
        self._psm = psm
        self._languages: set[str] = set()
        self._language: Optional[str] = None
        self._image: Optional[Image.Image] = None

    def load(self) -> None:
        self._languages = set(pytesseract.get_languages(config=""))
        logger.debug("Tesseract %s loaded with languages %s", self.version, sorted(self._languages))

    def load_language(self, language: str) -> None:
        missing = [lang for lang in language.split("+") if lang not in self._languages]
        if missing:
            raise RuntimeError(f"Tesseract language data not installed: {', '.join(missing)}")

    def initialize(self, language: str) -> None:
        self._language = language

    def recognize(self, image: bytes, progress: ProgressFn) -> str:
        if self._language is None:
            raise RuntimeError("Engine used before initialize().")
        progress(0.0)
        self._image = Image.open(io.BytesIO(image))
        gray = self._image.convert("L")
        text = pytesseract.image_to_string(gray, lang=self._language,
                                           config=f"--psm {self._psm}")
        progress(1.0)
        return text

    def terminate(self) -> None:
        if self._image is not None:
            self._image.close()
            self._image = None
        self._language = None
