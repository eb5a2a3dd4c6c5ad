# tests/test_title.py

from __future__ import annotations

import pytest

from taskbot.tasks.title import normalize_title


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Купить молоко сегодня #дом", "Купить молоко"),
        ("Созвониться с Иваном завтра в 15:00 #работа", "Созвониться с Иваном в"),
        ("Позвонить #маме   через 2 дня   пожалуйста", "Позвонить пожалуйста"),
        ("послезавтра забрать посылку", "забрать посылку"),
        ("pay rent day after tomorrow #home", "pay rent"),
        ("Встреча 9:30 и 18:00", "Встреча и"),
        ("завтрак", "завтрак"),
    ],
)
def test_normalize_title(text: str, expected: str) -> None:
    assert normalize_title(text) == expected


def test_may_become_empty() -> None:
    assert normalize_title("#дом сегодня 15:00") == ""


@pytest.mark.parametrize(
    "text",
    [
        "Купить молоко сегодня #дом",
        "Созвониться с Иваном завтра в 15:00 #работа",
        "12:00завтра отчёт",
        "  много    пробелов  ",
    ],
)
def test_normalizing_twice_is_a_no_op(text: str) -> None:
    once = normalize_title(text)
    assert normalize_title(once) == once
