"""Native-script checks for stage output."""
from typing import Dict, Tuple
from ..models.clinical import LanguageTag

# Unicode blocks of each language's native script
NATIVE_SCRIPT_RANGES: Dict[LanguageTag, Tuple[int, int]] = {
    LanguageTag.HINDI: (0x0900, 0x097F),     # Devanagari
    LanguageTag.MARATHI: (0x0900, 0x097F),   # Devanagari
    LanguageTag.BENGALI: (0x0980, 0x09FF),
    LanguageTag.GUJARATI: (0x0A80, 0x0AFF),
    LanguageTag.TAMIL: (0x0B80, 0x0BFF),
}

SCRIPT_NAMES: Dict[LanguageTag, str] = {
    LanguageTag.ENGLISH: "Latin",
    LanguageTag.HINDI: "Devanagari",
    LanguageTag.MARATHI: "Devanagari",
    LanguageTag.BENGALI: "Bengali",
    LanguageTag.GUJARATI: "Gujarati",
    LanguageTag.TAMIL: "Tamil",
}


def _is_latin_letter(ch: str) -> bool:
    return ch.isalpha() and ord(ch) < 0x0250


def _strip_markup(text: str) -> str:
    # Section headers are fixed English markers in every language
    return "\n".join(line for line in text.splitlines() if not line.lstrip().startswith("#"))


def latin_ratio(text: str) -> float:
    """Share of alphabetic characters that are Latin letters."""
    letters = [ch for ch in _strip_markup(text) if ch.isalpha()]
    if not letters:
        return 0.0
    return sum(1 for ch in letters if _is_latin_letter(ch)) / len(letters)


def native_letter_count(text: str, language: LanguageTag) -> int:
    if language not in NATIVE_SCRIPT_RANGES:
        return sum(1 for ch in text if _is_latin_letter(ch))
    low, high = NATIVE_SCRIPT_RANGES[language]
    return sum(1 for ch in text if low <= ord(ch) <= high)


def conforms_to_script(text: str, language: LanguageTag, max_latin_ratio: float = 0.25) -> bool:
    """
    True when ``text`` is written in the native script of ``language``.

    A small share of Latin letters is tolerated for units and drug strengths
    (``500mg``). Text with no letters at all conforms trivially.
    """
    if language is LanguageTag.ENGLISH:
        return True

    body = _strip_markup(text)
    if not any(ch.isalpha() for ch in body):
        return True
    if native_letter_count(body, language) == 0:
        return False
    return latin_ratio(body) <= max_latin_ratio
