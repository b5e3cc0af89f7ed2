import pytest

from gradebot.errors import OCRProviderError
from gradebot.services.vision import parse_vision_reply


def test_plain_json():
    r = parse_vision_reply('{"text": "3 + 4 = 8", "confidence": 0.9}')
    assert r.text == "3 + 4 = 8"
    assert r.confidence_percent == pytest.approx(90.0)


def test_code_fenced_json():
    r = parse_vision_reply('```json\n{"text": "a\\n\\n\\n\\nb", "confidence": "0.7"}\n```')
    assert r.text == "a\n\nb"
    assert r.confidence_percent == pytest.approx(70.0)


def test_missing_confidence_is_zero():
    r = parse_vision_reply('{"text": "hello"}')
    assert r.confidence_percent == 0.0


def test_not_json():
    with pytest.raises(OCRProviderError):
        parse_vision_reply("I cannot read this page, sorry.")


def test_not_an_object():
    with pytest.raises(OCRProviderError):
        parse_vision_reply("[1, 2, 3]")
