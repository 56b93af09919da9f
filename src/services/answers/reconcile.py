"""Match a model-computed value against printed multiple-choice options.

This is advisory text matching, not verified arithmetic: the model's value
is only ever restated in the options' formatting and compared for equality.
Passes, in order, each scanning every option before the next pass starts:

1. exact            - equal after text normalization
2. decimal_format   - equal after canonicalizing decimals (1.00 == 1.0 == 1)
3. ocr_substitution - equal after one common digit misread (6/5, 8/3, 0/6)
4. reformat         - equal once rendered in the option's own numeric form
                      (fraction, mixed number, decimal places, percent)

No match is a normal outcome (`consistency="no_match"`).
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from fractions import Fraction
from typing import Any, Literal

from schemas.answers import MatchMethod, MultipleChoiceOption, ReconciliationResult


NumericForm = Literal["integer", "decimal", "fraction", "mixed", "percent"]

# Digits a screenshot OCR pass commonly confuses, in both directions.
OCR_DIGIT_SUBSTITUTIONS: dict[str, tuple[str, ...]] = {
    "6": ("5", "0"),
    "5": ("6",),
    "8": ("3",),
    "3": ("8",),
    "0": ("6",),
}

_CURRENCY = re.compile(r"[$€£¥₹¢]")
_WHITESPACE = re.compile(r"\s+")
_OPTION_LABEL = re.compile(r"^\s*\(?([A-Za-z])[).:]\s*(.*)$", re.DOTALL)
_THOUSANDS = re.compile(r"-?\d{1,3}(?:,\d{3})+(?:\.\d+)?")
_DECIMAL_COMMA = re.compile(r"-?\d+,\d+")
_DECIMAL = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")
_FRACTION = re.compile(r"(-?\d+)/(\d+)")
_MIXED = re.compile(r"(-?)(\d+) (\d+)/(\d+)")
_PERCENT = re.compile(r"(-?(?:\d+\.?\d*|\.\d+))%")


def normalize_text(value: object) -> str:
    """Lowercase, drop currency symbols, collapse whitespace, fix separators."""
    text = _CURRENCY.sub("", str(value)).strip().lower()
    text = _WHITESPACE.sub(" ", text)
    text = re.sub(r"\s*/\s*", "/", text)
    text = re.sub(r"\s+%", "%", text)
    text = re.sub(r"(?<=\S)\.$", "", text)
    if _THOUSANDS.fullmatch(text):
        text = text.replace(",", "")
    elif _DECIMAL_COMMA.fullmatch(text):
        text = text.replace(",", ".")
    return text


def canonical_decimal(text: str) -> str | None:
    """`1.00` -> `1`, `.50` -> `0.5`; None for non-decimal text."""
    if not _DECIMAL.fullmatch(text):
        return None
    try:
        value = Decimal(text)
        if value == value.to_integral_value():
            return str(int(value))
        return format(value.normalize(), "f")
    except (InvalidOperation, ValueError):
        return None


def parse_options(options: Sequence[Any]) -> list[MultipleChoiceOption]:
    """Split `"A. text"`-style options; unlettered ones are lettered by position."""
    parsed: list[MultipleChoiceOption] = []
    for index, raw in enumerate(options):
        if isinstance(raw, dict):
            letter = str(raw.get("letter") or chr(ord("A") + index)).strip().upper()
            text = str(raw.get("text") or "").strip()
        else:
            raw_text = str(raw).strip()
            match = _OPTION_LABEL.match(raw_text)
            if match:
                letter, text = match.group(1).upper(), match.group(2).strip()
            else:
                letter, text = chr(ord("A") + index), raw_text
        if text:
            parsed.append(MultipleChoiceOption(letter=letter[:4], text=text))
    return parsed


def _ocr_variants(text: str) -> Iterator[str]:
    """Every string reachable by exactly one misread-digit substitution."""
    for i, ch in enumerate(text):
        for replacement in OCR_DIGIT_SUBSTITUTIONS.get(ch, ()):
            yield text[:i] + replacement + text[i + 1 :]


def _same_number_or_text(a: str, b: str) -> bool:
    if a == b:
        return True
    ca, cb = canonical_decimal(a), canonical_decimal(b)
    return ca is not None and ca == cb


# --- numeric forms ---------------------------------------------------------


def _decimal_places(text: str) -> int:
    return len(text.split(".", 1)[1]) if "." in text else 0


def numeric_form(text: str) -> tuple[NumericForm, int] | None:
    """Classify normalized option text as a numeric form (+ decimal places)."""
    if _MIXED.fullmatch(text):
        return "mixed", 0
    if _FRACTION.fullmatch(text):
        return "fraction", 0
    if match := _PERCENT.fullmatch(text):
        return "percent", _decimal_places(match.group(1))
    if _DECIMAL.fullmatch(text):
        places = _decimal_places(text)
        return ("decimal", places) if places else ("integer", 0)
    return None


def to_fraction(text: str) -> Fraction | None:
    """Read normalized text as an exact rational, if it is one."""
    if match := _MIXED.fullmatch(text):
        sign, whole, num, den = match.groups()
        if int(den) == 0:
            return None
        value = int(whole) + Fraction(int(num), int(den))
        return -value if sign else value
    if match := _FRACTION.fullmatch(text):
        if int(match.group(2)) == 0:
            return None
        return Fraction(int(match.group(1)), int(match.group(2)))
    if match := _PERCENT.fullmatch(text):
        return Fraction(Decimal(match.group(1))) / 100
    if _DECIMAL.fullmatch(text):
        try:
            return Fraction(Decimal(text))
        except InvalidOperation:
            return None
    return None


def _round(value: Fraction, places: int) -> str:
    whole_digits = len(str(abs(value.numerator) // value.denominator))
    with localcontext() as ctx:
        # quantize fails once the result needs more digits than the context holds
        ctx.prec = max(ctx.prec, whole_digits + places + 4)
        quantum = Decimal(1).scaleb(-places)
        exact = Decimal(value.numerator) / Decimal(value.denominator)
        return str(exact.quantize(quantum, rounding=ROUND_HALF_UP))


def render(value: Fraction, form: NumericForm, places: int = 0) -> str | None:
    """Render a rational in the given form; None when the form cannot hold it."""
    if form == "integer":
        return str(value.numerator) if value.denominator == 1 else None
    if form == "decimal":
        return _round(value, places)
    if form == "percent":
        return f"{_round(value * 100, places)}%"
    if form == "fraction":
        return f"{value.numerator}/{value.denominator}"
    # mixed
    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    whole = magnitude.numerator // magnitude.denominator
    rest = magnitude - whole
    if rest == 0:
        return f"{sign}{whole}"
    if whole == 0:
        return f"{sign}{rest.numerator}/{rest.denominator}"
    return f"{sign}{whole} {rest.numerator}/{rest.denominator}"


def _reformat_matches(computed: str, option_text: str) -> bool:
    form = numeric_form(option_text)
    if form is None:
        return False
    kind, places = form
    # Oversized numbers hit the int-string limit or decimal precision.
    try:
        value = to_fraction(computed)
        option_value = to_fraction(option_text)
        if value is None or option_value is None:
            return False
        rendered = render(value, kind, places)
        return rendered is not None and rendered == render(option_value, kind, places)
    except (ArithmeticError, ValueError):
        return False


# --- entry point -----------------------------------------------------------


def _first_match(
    candidates: Sequence[tuple[MultipleChoiceOption, str]],
    predicate: Callable[[str], bool],
) -> MultipleChoiceOption | None:
    for option, text in candidates:
        if predicate(text):
            return option
    return None


def reconcile(computed_value: object, options: Sequence[Any]) -> ReconciliationResult:
    """Find the option the model's computed value refers to, if any."""
    computed_raw = "" if computed_value is None else str(computed_value).strip()
    parsed = parse_options(options)
    computed = normalize_text(computed_raw)
    if not computed or not parsed:
        return ReconciliationResult(computed_value=computed_raw, consistency="no_match")

    candidates = [(o, normalize_text(o.text)) for o in parsed]
    canonical = canonical_decimal(computed)
    variants = list(_ocr_variants(computed))

    passes: tuple[tuple[MatchMethod, Callable[[str], bool]], ...] = (
        ("exact", lambda text: text == computed),
        (
            "decimal_format",
            lambda text: canonical is not None and canonical_decimal(text) == canonical,
        ),
        (
            "ocr_substitution",
            lambda text: any(_same_number_or_text(v, text) for v in variants),
        ),
        ("reformat", lambda text: _reformat_matches(computed, text)),
    )
    for method, predicate in passes:
        option = _first_match(candidates, predicate)
        if option is not None:
            return ReconciliationResult(
                computed_value=computed_raw,
                matched_option=option,
                consistency="match",
                method=method,
            )
    return ReconciliationResult(computed_value=computed_raw, consistency="no_match")
