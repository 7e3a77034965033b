"""Turn raw OCR text into a single-variable equation string."""

import enum
import re
from dataclasses import dataclass

import config


class ExtractionErrorKind(enum.Enum):
    EMPTY = "no text found"


class ExtractionError(Exception):
    def __init__(self, kind: ExtractionErrorKind = ExtractionErrorKind.EMPTY) -> None:
        self.kind = kind
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return f"Extraction failed: {self.kind.value}"


@dataclass(frozen=True)
class ExtractedEquation:
    line: str
    equation: str
    variable: str


def extract(raw_text: str, fallback_variable: str = config.FALLBACK_VARIABLE) -> ExtractedEquation:
    """Return the first line of *raw_text* as an equation plus its variable.

    Whitespace inside the line is removed, the first letter found is the
    variable to solve for, and an expression without ``=`` is taken to
    equal zero.
    """
    text = (raw_text or "").strip()
    if not text:
        raise ExtractionError(ExtractionErrorKind.EMPTY)

    line = re.sub(r"\s+", "", re.split(r"[\r\n]", text)[0])

    match = re.search(r"[A-Za-z]", line)
    variable = match.group(0) if match else fallback_variable

    equation = line if "=" in line else f"{line}=0"
    return ExtractedEquation(line=line, equation=equation, variable=variable)
