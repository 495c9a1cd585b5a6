"""Correction of common OCR confusions in numeric contexts.

Substitutions only fire next to digits (or before a unit/percent token), so
ordinary label prose such as ``Iron``, ``Sodium`` or ``2 Slices`` is left
untouched.
"""

from __future__ import annotations

import re

_CONFUSABLE = "OoIlSs"
_UNIT = r"(?:mcg|mg|g|%)"

# A confusable letter after a digit, when the run of confusables it starts
# reaches a digit, ends the token, or is followed by a unit ("1Og").
_AFTER_DIGIT = (
    r"(?<=\d)[{letters}](?=[" + _CONFUSABLE + r"]*(?:\d|$|[^A-Za-z])|" + _UNIT + r"(?![A-Za-z]))"
)
# S/s reads as 5 only between digits; "10s" and "2Slices" stay words.
_BETWEEN_DIGITS = r"(?<=\d)[{letters}](?=[" + _CONFUSABLE + r"]*\d)"
# A confusable letter that precedes a digit and is not the tail of a word.
_BEFORE_DIGIT = r"(?<![A-Za-z])[{letters}](?=[" + _CONFUSABLE + r"]*\d)"

_SUBSTITUTIONS = [
    (re.compile(_AFTER_DIGIT.format(letters="Oo")), "0"),
    (re.compile(_BEFORE_DIGIT.format(letters="Oo")), "0"),
    (re.compile(_AFTER_DIGIT.format(letters="Il")), "1"),
    (re.compile(_BEFORE_DIGIT.format(letters="Il")), "1"),
    (re.compile(_BETWEEN_DIGITS.format(letters="Ss")), "5"),
    (re.compile(_BEFORE_DIGIT.format(letters="Ss")), "5"),
]

# "Og", "O mg", "O%" -> zero amount
_ZERO_BEFORE_UNIT = re.compile(r"(?<![A-Za-z0-9])[oO](?=\s?" + _UNIT + r"(?![A-Za-z]))", re.IGNORECASE)
_UNIT_TYPO = re.compile(r"mng", re.IGNORECASE)
_WHITESPACE_RUN = re.compile(r"\s{2,}")

_MAX_PASSES = 8


def normalize_numeric_artifacts(text: str | None) -> str:
    """Return ``text`` with letter/digit OCR confusions corrected."""
    if not text:
        return ""
    s = _UNIT_TYPO.sub("mg", text)
    s = _ZERO_BEFORE_UNIT.sub("0", s)
    # Substitutions can expose new digit neighbours ("1lO" -> "11O" -> "110"),
    # so repeat until the text is stable.
    for _ in range(_MAX_PASSES):
        previous = s
        for pattern, digit in _SUBSTITUTIONS:
            s = pattern.sub(digit, s)
        if s == previous:
            break
    return _WHITESPACE_RUN.sub(" ", s)


__all__ = ["normalize_numeric_artifacts"]
