"""Equation solving with SymPy.

Takes the single-line equation produced by the extractor (e.g. "2x+3=7"
or "y^2-4=0") and the variable to solve for, and renders the roots as
readable text.  Anything SymPy cannot parse or solve surfaces as a
:class:`SolveError`; SymPy's own exceptions stay inside this module.
"""

import enum
import re
from dataclasses import dataclass

from sympy import Eq, Symbol, simplify, solve
from sympy.parsing.sympy_parser import (
    parse_expr, standard_transformations, implicit_multiplication_application,
    convert_xor, rationalize
)

TRANSFORMATIONS = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,
    rationalize,  # Convert decimals like "12.5" to exact Rational(25, 2)
)

# Names the parser must keep as functions / constants, never split into letters.
_RESERVED = {
    'sin', 'cos', 'tan', 'log', 'ln', 'exp', 'sqrt',
    'pi', 'PI', 'Pi', 'abs', 'E',
}

# Characters OCR commonly returns in place of their ASCII operators.
_OCR_SYMBOLS = str.maketrans({
    '−': '-', '–': '-', '—': '-',
    '×': '*', '·': '*',
    '÷': '/',
    '²': '^2', '³': '^3',
    '[': '(', ']': ')', '{': '(', '}': ')',
})

_ALLOWED_CHARS = set("abcdefghijklmnopqrstuvwxyz"
                     "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
                     "0123456789"
                     " \t+-*/^=().")


class SolveErrorKind(enum.Enum):
    UNPARSEABLE = "unparseable"


class SolveError(Exception):
    def __init__(self, kind: SolveErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.detail:
            return f"Equation {self.kind.value}: {self.detail}"
        return f"Equation {self.kind.value}"


@dataclass(frozen=True)
class SolutionDescription:
    variable: str
    solutions: tuple
    text: str


def _unparseable(detail: str) -> SolveError:
    return SolveError(SolveErrorKind.UNPARSEABLE, detail)


def _normalize_symbols(equation_str: str) -> str:
    s = equation_str.translate(_OCR_SYMBOLS)
    s = s.replace('√', 'sqrt')
    s = s.replace('π', '(pi)')
    return s


def _validate_characters(equation_str: str) -> None:
    bad = sorted({ch for ch in equation_str if ch not in _ALLOWED_CHARS})
    if bad:
        raise _unparseable(f"invalid character(s): {' '.join(bad)}")


def _symbol_table(equation_str: str, variable: str) -> dict:
    """Map every single letter used as an unknown to a SymPy ``Symbol``.

    Multi-letter tokens that aren't reserved function names are read as
    implicit multiplication of their letters (``xy`` → x·y).
    """
    names = {variable}
    for tok in re.findall(r'[A-Za-z]+', equation_str):
        if tok in _RESERVED:
            continue
        names.update(tok)
    return {name: Symbol(name) for name in names}


def _expand_implicit_vars(s: str, var_names: set) -> str:
    """Replace multi-letter tokens made only of known variable letters with
    explicit products (``as`` → ``a*s``) so Python keywords never reach
    the parser."""
    def _repl(m):
        tok = m.group(0)
        if tok not in _RESERVED and all(ch in var_names for ch in tok):
            return '*'.join(tok)
        return tok
    return re.sub(r'[A-Za-z]+', _repl, s)


def _parse_side(expr_str: str, local: dict):
    s = expr_str.strip().replace('^', '**')
    s = _expand_implicit_vars(s, set(local))
    try:
        return parse_expr(s, local_dict=local, transformations=TRANSFORMATIONS)
    except Exception as e:
        raise _unparseable(f"could not parse '{expr_str}' ({e})") from e


_SUPERSCRIPT = str.maketrans("0123456789+-/()", "⁰¹²³⁴⁵⁶⁷⁸⁹⁺⁻ᐟ⁽⁾")


def _to_superscript(text: str) -> str:
    return text.translate(_SUPERSCRIPT)


def _format_expr(expr) -> str:
    """Readable form of a SymPy expression: superscript exponents, implicit
    coefficients, ``√`` and ``π``."""
    s = str(expr)

    def _sup_repl(m):
        exp_text = m.group(1)
        if exp_text.startswith("(") and exp_text.endswith(")"):
            exp_text = exp_text[1:-1]
        return _to_superscript(exp_text)

    s = re.sub(r'\*\*\(([^)]+)\)', _sup_repl, s)
    s = re.sub(r'\*\*(-?\d+)', _sup_repl, s)
    # 2*x → 2x, 3*sqrt(2) → 3sqrt(2)
    s = re.sub(r'(\d)\*([A-Za-z(])', r'\1\2', s)
    s = re.sub(r'\)\*([A-Za-z])', r')\1', s)
    s = s.replace('*', '·')
    s = re.sub(r'(?<![a-zA-Z])pi(?![a-zA-Z])', 'π', s)
    return s.replace('sqrt(', '√(')


def solve_equation(equation_str: str, variable: str) -> SolutionDescription:
    """Solve *equation_str* for *variable*.

    Raises :class:`SolveError` when the text can't be parsed or SymPy
    gives up on it.
    """
    equation_str = _normalize_symbols(equation_str)
    _validate_characters(equation_str)

    parts = equation_str.split('=')
    if len(parts) != 2:
        raise _unparseable("equation must contain exactly one '=' sign")
    lhs_str, rhs_str = parts[0].strip(), parts[1].strip()
    if not lhs_str or not rhs_str:
        raise _unparseable("both sides of the equation must have expressions")

    local = _symbol_table(equation_str, variable)
    var = local[variable]
    lhs = _parse_side(lhs_str, local)
    rhs = _parse_side(rhs_str, local)

    try:
        combined = simplify(lhs - rhs)
        if var not in combined.free_symbols:
            if combined == 0:
                return SolutionDescription(variable, (), f"all values of {variable}")
            return SolutionDescription(variable, (), "no solution")
        roots = solve(Eq(lhs, rhs), var)
    except Exception as e:
        raise _unparseable(f"could not solve for {variable} ({e})") from e

    if not roots:
        return SolutionDescription(variable, (), "no solution")
    rendered = tuple(_format_expr(r) for r in roots)
    return SolutionDescription(variable, rendered, ", ".join(rendered))
