"""Keyword intent classification for caller utterances.

The state machine depends only on the IntentClassifier protocol, so a
model-backed classifier can replace KeywordIntentClassifier without
touching any phase handler.
"""

import re
import unicodedata
from datetime import date, timedelta
from typing import Protocol

from src.shared.types import AlternativeIntent, DateIntent, Intent

# Phrases that make a yes/no answer unusable ("no sé", "no entiendo").
UNCERTAIN_PHRASES = (
    "no se",
    "no lo se",
    "no estoy seguro",
    "no estoy segura",
    "no entiendo",
    "no entendi",
    "repita",
    "i don't know",
    "not sure",
)

NEGATIVE_PHRASES = (
    "no es correcto",
    "no es",
    "incorrecto",
    "equivocado",
    "equivocada",
    "se equivoco",
    "esta mal",
    "negativo",
    "para nada",
    "tampoco",
    "no",
    "nope",
    "wrong",
    "incorrect",
    "not correct",
)

AFFIRMATIVE_PHRASES = (
    "es correcto",
    "correcto",
    "asi es",
    "eso es",
    "exacto",
    "efectivamente",
    "afirmativo",
    "de acuerdo",
    "claro",
    "perfecto",
    "dale",
    "bueno",
    "si",
    "ya",
    "ok",
    "okay",
    "yes",
    "yeah",
    "yep",
    "correct",
    "right",
    "sure",
)

SPECIALTY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "medicina general": (
        "medicina general",
        "medico general",
        "consulta general",
        "control",
        "general",
    ),
    "odontología": ("odontologia", "odontologo", "dentista", "dental", "muela", "diente"),
    "pediatría": ("pediatria", "pediatra", "nino", "nina", "guagua"),
    "ginecología": ("ginecologia", "ginecologo", "matrona", "matron"),
    "cardiología": ("cardiologia", "cardiologo", "corazon"),
    "traumatología": ("traumatologia", "traumatologo", "fractura", "hueso"),
    "oftalmología": ("oftalmologia", "oftalmologo", "ojos", "vista"),
    "dermatología": ("dermatologia", "dermatologo", "piel"),
    "kinesiología": ("kinesiologia", "kinesiologo", "kine"),
    "psicología": ("psicologia", "psicologo", "psicologa"),
    "nutrición": ("nutricion", "nutricionista"),
}

SPANISH_MONTHS = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)

ASAP_PHRASES = (
    "lo antes posible",
    "lo mas pronto",
    "cuanto antes",
    "la primera",
    "primera hora",
    "cualquier dia",
    "cualquiera",
    "pronto",
    "as soon as possible",
    "asap",
    "earliest",
)

CHANGE_ID_PHRASES = (
    "otro rut",
    "otra persona",
    "otro paciente",
    "otra paciente",
    "no soy yo",
    "cambiar de rut",
    "cambiar el rut",
    "cambiar de persona",
    "cambiar de paciente",
    "rut diferente",
    "persona diferente",
    "another id",
    "someone else",
)

ACCEPT_PATTERN = re.compile(r"^(si|bueno|ok|claro|ya|otra|consultar|ver|buscar|yes|sure)\b")
DECLINE_PATTERN = re.compile(
    r"\b(no|gracias|otro momento|despues|luego|nada mas|mas tarde|thanks)\b"
)
_SPECIFIC_DATE = re.compile(r"\b(\d{1,2})\s*(?:de|/|-)\s*([a-z]+|\d{1,2})\b")
_CLAUSE_BREAK = re.compile(r"[,.;:!?\u00a1\u00bf]")


def normalize_text(text: str) -> str:
    """Lower-case, strip accents and punctuation, collapse whitespace.

    Args:
        text: Raw transcript.

    Returns:
        Normalized text suitable for keyword matching.
    """
    decomposed = unicodedata.normalize("NFKD", text.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    cleaned = re.sub(r"[^\w\s'/-]", " ", stripped)
    return " ".join(cleaned.split())


def contains_phrase(text: str, phrase: str) -> bool:
    """True if phrase appears in text on word boundaries."""
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


def clauses(text: str) -> list[str]:
    """Split a transcript at punctuation and normalize each clause."""
    return [c for c in (normalize_text(part) for part in _CLAUSE_BREAK.split(text)) if c]


class IntentClassifier(Protocol):
    """Pluggable caller-intent capability used by the phase handlers."""

    def classify(self, text: str) -> Intent: ...

    def classify_date(self, text: str, today: date) -> tuple[DateIntent, str | None]: ...

    def match_specialty(self, text: str) -> str | None: ...

    def classify_alternative(self, text: str) -> AlternativeIntent: ...


class KeywordIntentClassifier:
    """Spanish and English keyword heuristics."""

    def classify(self, text: str) -> Intent:
        """Classify a yes/no answer.

        Uncertainty phrases win over everything, then negatives, then
        affirmatives. Uncertainty is matched within one clause, so
        "no, se equivocó" is a negative and not "no sé".

        Args:
            text: Caller transcript.

        Returns:
            Intent.YES, Intent.NO or Intent.UNKNOWN.
        """
        clean = normalize_text(text or "")
        if not clean:
            return Intent.UNKNOWN
        if any(
            contains_phrase(clause, p) for clause in clauses(text) for p in UNCERTAIN_PHRASES
        ):
            return Intent.UNKNOWN
        if any(contains_phrase(clean, p) for p in NEGATIVE_PHRASES):
            return Intent.NO
        if any(contains_phrase(clean, p) for p in AFFIRMATIVE_PHRASES):
            return Intent.YES
        return Intent.UNKNOWN

    def classify_date(self, text: str, today: date) -> tuple[DateIntent, str | None]:
        """Classify the requested appointment date.

        Args:
            text: Caller transcript.
            today: Reference date for relative expressions.

        Returns:
            Tuple of DateIntent and ISO date (None for ASAP/UNKNOWN).
        """
        clean = normalize_text(text or "")
        if not clean:
            return DateIntent.UNKNOWN, None
        if contains_phrase(clean, "pasado manana"):
            return DateIntent.SPECIFIC, (today + timedelta(days=2)).isoformat()
        if any(contains_phrase(clean, p) for p in ASAP_PHRASES):
            return DateIntent.ASAP, None
        if any(contains_phrase(clean, p) for p in ("manana", "tomorrow")):
            return DateIntent.TOMORROW, (today + timedelta(days=1)).isoformat()
        if any(contains_phrase(clean, p) for p in ("hoy", "ahora", "today")):
            return DateIntent.TODAY, today.isoformat()
        specific = parse_specific_date(clean, today)
        if specific is not None:
            return DateIntent.SPECIFIC, specific.isoformat()
        return DateIntent.UNKNOWN, None

    def match_specialty(self, text: str) -> str | None:
        """Map a transcript to a known specialty name.

        Args:
            text: Caller transcript.

        Returns:
            Specialty display name, or None if nothing matched.
        """
        clean = normalize_text(text or "")
        if not clean:
            return None
        for specialty, keywords in SPECIALTY_KEYWORDS.items():
            if any(contains_phrase(clean, k) for k in keywords):
                return specialty
        return None

    def classify_alternative(self, text: str) -> AlternativeIntent:
        """Classify the answer to "do you want another specialty?".

        Identity change requests are checked first so that "otra
        persona" is never read as acceptance.

        Args:
            text: Caller transcript.

        Returns:
            AlternativeIntent value.
        """
        clean = normalize_text(text or "")
        if not clean:
            return AlternativeIntent.UNKNOWN
        if any(contains_phrase(clean, p) for p in CHANGE_ID_PHRASES):
            return AlternativeIntent.CHANGE_ID
        if ACCEPT_PATTERN.search(clean):
            return AlternativeIntent.ACCEPT
        if DECLINE_PATTERN.search(clean):
            return AlternativeIntent.DECLINE
        return AlternativeIntent.UNKNOWN


def parse_specific_date(clean: str, today: date) -> date | None:
    """Parse "15 de marzo" or "15/03" into the next matching date.

    Args:
        clean: Normalized transcript.
        today: Reference date; past dates roll into next year.

    Returns:
        Parsed date, or None.
    """
    match = _SPECIFIC_DATE.search(clean)
    if match is None:
        return None
    day = int(match.group(1))
    month_token = match.group(2)
    if month_token.isdigit():
        month = int(month_token)
    elif month_token in SPANISH_MONTHS:
        month = SPANISH_MONTHS.index(month_token) + 1
    else:
        return None
    try:
        candidate = date(today.year, month, day)
    except ValueError:
        return None
    if candidate < today:
        try:
            candidate = date(today.year + 1, month, day)
        except ValueError:
            return None
    return candidate
