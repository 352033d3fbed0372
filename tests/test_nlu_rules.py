import pytest

from support_engine.nlu import Intent, RuleBasedClassifier, extract_entities


@pytest.mark.parametrize(
    "text",
    [
        "Cât mai durează comanda #1234?",
        "status 1234",
        "Am comandat flori, nr 1234, când ajung?",
        "#1234",
        "comanda 1234 din 12.05",
    ],
)
def test_order_id_extraction(text):
    assert extract_entities(text).order_id == "1234"


def test_marked_order_id_wins_over_earlier_bare_number():
    assert extract_entities("Am plătit 250 lei pentru comanda #98765").order_id == "98765"


def test_first_marked_order_id_wins():
    assert extract_entities("Comanda #1111 sau comanda #2222?").order_id == "1111"


def test_digit_runs_outside_range_are_not_order_ids():
    assert extract_entities("Cod 12 și 1234567").order_id is None


def test_phone_digits_are_not_read_as_order_id():
    entities = extract_entities("Sunt pe 0712345678, unde e comanda?")

    assert entities.phone == "0712345678"
    assert entities.order_id is None


def test_email_extraction():
    entities = extract_entities("Emailul meu e ana.pop+flori@example.ro")

    assert entities.email == "ana.pop+flori@example.ro"
    assert entities.order_id is None


@pytest.mark.parametrize(
    ("text", "intent"),
    [
        ("Cât mai durează comanda #1234?", Intent.ORDER_STATUS),
        ("Cand vine livrarea?", Intent.ORDER_STATUS),
        ("Vreau să anulez comanda #1234", Intent.ORDER_CANCEL),
        ("nu mai vreau florile", Intent.ORDER_CANCEL),
        ("Care e politica de retur?", Intent.RETURN_POLICY),
        ("Vreau bani inapoi", Intent.RETURN_POLICY),
        ("Bună ziua", Intent.UNKNOWN),
        ("Mulțumesc, îmi răspunde cineva?", Intent.UNKNOWN),
    ],
)
def test_keyword_intents(text, intent):
    assert RuleBasedClassifier().classify(text).intent == intent


def test_rule_confidence_levels():
    classifier = RuleBasedClassifier()

    assert classifier.classify("Status comanda 5678").confidence == 0.8
    assert classifier.classify("Salut").confidence == 0.5
