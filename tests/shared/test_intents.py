"""Tests for keyword intent classification."""

from datetime import date

import pytest

from src.shared.intents import KeywordIntentClassifier, normalize_text, parse_specific_date
from src.shared.types import AlternativeIntent, DateIntent, Intent

TODAY = date(2026, 10, 19)


@pytest.fixture
def classifier() -> KeywordIntentClassifier:
    """Default keyword classifier."""
    return KeywordIntentClassifier()


class TestNormalizeText:
    """Text normalization for matching."""

    def test_strips_accents_and_punctuation(self) -> None:
        """Accents and punctuation are removed, case is lowered."""
        assert normalize_text("¡Sí, Mañana!") == "si manana"


class TestClassify:
    """Yes/no classification."""

    @pytest.mark.parametrize(
        "text", ["sí", "Sí, correcto", "es correcto", "claro que sí", "yes"]
    )
    def test_affirmative(self, classifier: KeywordIntentClassifier, text: str) -> None:
        """Affirmative answers are YES."""
        assert classifier.classify(text) == Intent.YES

    @pytest.mark.parametrize("text", ["no", "No, está mal", "no es correcto", "incorrecto"])
    def test_negative(self, classifier: KeywordIntentClassifier, text: str) -> None:
        """Negative answers are NO."""
        assert classifier.classify(text) == Intent.NO

    @pytest.mark.parametrize("text", ["", "no sé", "quiero una hora", "mmm"])
    def test_unknown(self, classifier: KeywordIntentClassifier, text: str) -> None:
        """Unclear answers are UNKNOWN."""
        assert classifier.classify(text) == Intent.UNKNOWN

    def test_word_boundaries(self, classifier: KeywordIntentClassifier) -> None:
        """'no' inside another word is not a negative."""
        assert classifier.classify("nosotros") == Intent.UNKNOWN

    @pytest.mark.parametrize("text", ["no, se equivocó", "No. Se equivocó de RUT"])
    def test_negative_clause_before_verb(
        self, classifier: KeywordIntentClassifier, text: str
    ) -> None:
        """'no' followed by a new clause is a negative, not 'no sé'."""
        assert classifier.classify(text) == Intent.NO

    def test_uncertainty_inside_clause(self, classifier: KeywordIntentClassifier) -> None:
        """'no sé si es correcto' stays uncertain."""
        assert classifier.classify("no sé si es correcto") == Intent.UNKNOWN


class TestClassifyDate:
    """Requested date classification."""

    def test_today(self, classifier: KeywordIntentClassifier) -> None:
        """'hoy' is today's date."""
        assert classifier.classify_date("para hoy", TODAY) == (DateIntent.TODAY, "2026-10-19")

    def test_tomorrow(self, classifier: KeywordIntentClassifier) -> None:
        """'mañana' is tomorrow."""
        assert classifier.classify_date("mañana", TODAY) == (DateIntent.TOMORROW, "2026-10-20")

    def test_day_after_tomorrow(self, classifier: KeywordIntentClassifier) -> None:
        """'pasado mañana' is two days ahead, not tomorrow."""
        assert classifier.classify_date("pasado mañana", TODAY) == (
            DateIntent.SPECIFIC,
            "2026-10-21",
        )

    def test_asap(self, classifier: KeywordIntentClassifier) -> None:
        """'lo antes posible' has no concrete date."""
        assert classifier.classify_date("lo antes posible", TODAY) == (DateIntent.ASAP, None)

    def test_specific_date(self, classifier: KeywordIntentClassifier) -> None:
        """'el 5 de noviembre' resolves to this year."""
        assert classifier.classify_date("el 5 de noviembre", TODAY) == (
            DateIntent.SPECIFIC,
            "2026-11-05",
        )

    def test_unknown(self, classifier: KeywordIntentClassifier) -> None:
        """Unrelated text is UNKNOWN."""
        assert classifier.classify_date("no sé", TODAY) == (DateIntent.UNKNOWN, None)


class TestParseSpecificDate:
    """Explicit day/month parsing."""

    def test_past_date_rolls_to_next_year(self) -> None:
        """A date already gone this year means next year."""
        assert parse_specific_date("3 de marzo", TODAY) == date(2027, 3, 3)

    def test_numeric_form(self) -> None:
        """'25/12' is a day/month pair."""
        assert parse_specific_date("25/12", TODAY) == date(2026, 12, 25)

    def test_invalid_day(self) -> None:
        """Impossible dates are rejected."""
        assert parse_specific_date("31 de febrero", TODAY) is None


class TestMatchSpecialty:
    """Specialty keyword map."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("medicina general", "medicina general"),
            ("necesito un dentista", "odontología"),
            ("para mi niño", "pediatría"),
            ("Cardiología por favor", "cardiología"),
        ],
    )
    def test_matches(self, classifier: KeywordIntentClassifier, text: str, expected: str) -> None:
        """Keywords map to specialty names."""
        assert classifier.match_specialty(text) == expected

    def test_no_match(self, classifier: KeywordIntentClassifier) -> None:
        """Unrelated text has no specialty."""
        assert classifier.match_specialty("quiero hablar con alguien") is None


class TestClassifyAlternative:
    """Answer to the offer of another specialty."""

    def test_accept(self, classifier: KeywordIntentClassifier) -> None:
        """'sí' accepts."""
        assert classifier.classify_alternative("sí, por favor") == AlternativeIntent.ACCEPT

    def test_other_specialty_accepts(self, classifier: KeywordIntentClassifier) -> None:
        """'otra especialidad' accepts."""
        assert classifier.classify_alternative("otra especialidad") == AlternativeIntent.ACCEPT

    def test_other_person_is_id_change(self, classifier: KeywordIntentClassifier) -> None:
        """'otra persona' is an identity change, not acceptance."""
        assert classifier.classify_alternative("otra persona") == AlternativeIntent.CHANGE_ID

    @pytest.mark.parametrize(
        "text", ["sí, quiero cambiar de especialidad", "una especialidad diferente"]
    )
    def test_changing_specialty_is_not_id_change(
        self, classifier: KeywordIntentClassifier, text: str
    ) -> None:
        """Changing the specialty is not a request for another person."""
        assert classifier.classify_alternative(text) != AlternativeIntent.CHANGE_ID

    def test_change_of_rut_is_id_change(self, classifier: KeywordIntentClassifier) -> None:
        """'cambiar de rut' is an identity change."""
        result = classifier.classify_alternative("quiero cambiar de rut")
        assert result == AlternativeIntent.CHANGE_ID

    def test_decline(self, classifier: KeywordIntentClassifier) -> None:
        """'no, gracias' declines."""
        assert classifier.classify_alternative("no, gracias") == AlternativeIntent.DECLINE

    def test_unknown(self, classifier: KeywordIntentClassifier) -> None:
        """Unclear answers are UNKNOWN."""
        assert classifier.classify_alternative("eh") == AlternativeIntent.UNKNOWN
