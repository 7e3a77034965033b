from solver.engine import SolutionDescription, SolveError, SolveErrorKind, solve_equation
from solver.extract import ExtractedEquation, ExtractionError, ExtractionErrorKind, extract
from solver.pipeline import (
    PipelineError, PipelineErrorKind, PipelineState, SolveOutcome, SolvePipeline
)

__all__ = [
    "ExtractedEquation",
    "ExtractionError",
    "ExtractionErrorKind",
    "PipelineError",
    "PipelineErrorKind",
    "PipelineState",
    "SolutionDescription",
    "SolveError",
    "SolveErrorKind",
    "SolveOutcome",
    "SolvePipeline",
    "extract",
    "solve_equation",
]
