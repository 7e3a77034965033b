from ocr.engine import RecognitionEngine, TesseractEngine
from ocr.recognizer import Recognizer, RecognitionError, RecognitionErrorKind

__all__ = [
    "RecognitionEngine",
    "RecognitionError",
    "RecognitionErrorKind",
    "Recognizer",
    "TesseractEngine",
]
