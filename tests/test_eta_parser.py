import pytest

from support_engine.nlu import parse_romanian_eta, validate_eta


@pytest.mark.parametrize(
    ("reply", "expected"),
    [
        ("azi până la 18:00", "azi până la 18:00"),
        ("Azi pana la 18", "azi până la 18:00"),
        ("ajunge azi", "azi"),
        ("mâine 14-18", "mâine 14:00–18:00"),
        ("maine intre 10 - 12", "mâine 10:00–12:00"),
        ("mâine după 15", "mâine după 15:00"),
        ("mâine", "mâine"),
        ("3-5 zile", "3-5 zile"),
        ("în 2–4 zile lucrătoare", "2-4 zile"),
        ("pe la 16:30", "16:30"),
        ("  săptămâna viitoare  ", "săptămâna viitoare"),
    ],
)
def test_parse_romanian_eta(reply, expected):
    assert parse_romanian_eta(reply) == expected


@pytest.mark.parametrize("reply", ["azi", "mâine 14-18", "maine", "18:00", "3-5 zile", "pana la 20"])
def test_validate_eta_accepts_known_shapes(reply):
    assert validate_eta(reply)


@pytest.mark.parametrize("reply", ["", "a", "ok", "nu știu", "5 zile"])
def test_validate_eta_rejects_other_text(reply):
    assert not validate_eta(reply)
