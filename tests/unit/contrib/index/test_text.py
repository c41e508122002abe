import pytest

from django_site_rag.contrib.index.text import normalize


@pytest.mark.parametrize(
    "text,expected",
    [
        ("", ""),
        (None, ""),
        ("   ", ""),
        ("Line one\r\nLine two\rLine three\n", "Line one Line two Line three"),
        ("  lots   of\t\tspace \n\n here ", "lots of space here"),
        ("already clean", "already clean"),
    ],
)
def test_normalize(text, expected):
    assert normalize(text) == expected


@pytest.mark.parametrize(
    "text",
    [
        "Rates from 7.99%.\r\n\r\n  No annual fee!\t",
        "\n\n\n",
        "one two",
        " ! ? . ",
    ],
)
def test_normalize_is_idempotent_and_never_lengthens(text):
    once = normalize(text)
    assert normalize(once) == once
    assert len(once) <= len(text)
