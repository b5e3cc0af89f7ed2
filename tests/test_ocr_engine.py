import asyncio

import pytest

from gradebot.errors import AllProvidersFailedError, ExtractionQualityError, OCRProviderError
from gradebot.models import BoundingBox, RecognizedText
from gradebot.services.ocr import DEFAULT_LANGUAGE, OCREngine, resolve_language
from gradebot.services.preprocess import preprocess

from conftest import FakeProvider, make_asset


def _image():
    return preprocess(make_asset())


def _text(conf, text="3 + 4 = 8"):
    return RecognizedText(text=text, confidence_percent=conf, words=[BoundingBox(x0=1, y0=2, x1=3, y1=4)])


def test_resolve_language():
    assert resolve_language("eng") == "eng"
    assert resolve_language("chi_sim+eng") == "chi_sim+eng"
    # unknown tags fall back to the combined traditional Chinese + English code
    assert resolve_language("klingon") == DEFAULT_LANGUAGE == "chi_tra+eng"
    assert resolve_language(None) == "chi_tra+eng"


def test_accepts_first_confident_result(clock):
    first = FakeProvider("first", _text(82))
    second = FakeProvider("second", _text(99))
    engine = OCREngine([first, second], clock=clock)

    result = asyncio.run(engine.extract(_image(), "eng"))

    assert result.text == "3 + 4 = 8"
    assert result.confidence == pytest.approx(0.82)
    assert result.provider == "first"
    assert result.language == "eng"
    assert result.bounding_boxes == [BoundingBox(x0=1, y0=2, x1=3, y1=4)]
    # first acceptable wins; the better provider is never asked
    assert second.calls == []


def test_threshold_is_strict(clock):
    # exactly 0.6 is not good enough
    at = FakeProvider("at", _text(60))
    above = FakeProvider("above", _text(61))
    engine = OCREngine([at, above], clock=clock)

    result = asyncio.run(engine.extract(_image()))
    assert result.provider == "above"
    assert result.confidence > 0.6


def test_provider_error_moves_to_next(clock):
    broken = FakeProvider("broken", OCRProviderError("tesseract missing"))
    good = FakeProvider("good", _text(90))
    engine = OCREngine([broken, good], clock=clock)

    result = asyncio.run(engine.extract(_image()))
    assert result.provider == "good"
    assert len(broken.calls) == 1


def test_all_below_threshold_fails(clock):
    engine = OCREngine([FakeProvider("a", _text(60)), FakeProvider("b", _text(10))], clock=clock)

    with pytest.raises(AllProvidersFailedError) as exc:
        asyncio.run(engine.extract(_image()))
    assert isinstance(exc.value, ExtractionQualityError)
    assert exc.value.failures == ["a: confidence 0.60", "b: confidence 0.10"]


def test_all_raising_fails(clock):
    engine = OCREngine([FakeProvider("a", RuntimeError("boom"))], clock=clock)
    with pytest.raises(AllProvidersFailedError, match="a: boom"):
        asyncio.run(engine.extract(_image()))


def test_release_called_on_every_path(clock):
    broken = FakeProvider("broken", RuntimeError("boom"))
    weak = FakeProvider("weak", _text(20))
    good = FakeProvider("good", _text(90))
    engine = OCREngine([broken, weak, good], clock=clock)

    asyncio.run(engine.extract(_image()))
    assert (broken.released, weak.released, good.released) == (1, 1, 1)


def test_language_code_and_options_passed(clock):
    p = FakeProvider("p", _text(90))
    engine = OCREngine([p], options={"segmentation_mode": 4}, clock=clock)

    asyncio.run(engine.extract(_image(), "unknown-tag"))
    _, code, options = p.calls[0]
    assert code == "chi_tra+eng"
    assert options == {"segmentation_mode": 4, "engine_mode": 1}


def test_processing_time_is_measured():
    ticks = iter([10.0, 10.25])
    engine = OCREngine([FakeProvider("p", _text(90))], clock=lambda: next(ticks))

    result = asyncio.run(engine.extract(_image()))
    assert result.processing_time_ms == 250


def test_on_provider_reports_each_attempt(clock):
    seen = []
    engine = OCREngine(
        [FakeProvider("a", _text(10)), FakeProvider("b", _text(90))], clock=clock
    )
    asyncio.run(engine.extract(_image(), on_provider=lambda *args: seen.append(args)))
    assert seen == [("a", 0, 2), ("b", 1, 2)]


def test_misbehaving_observer_is_ignored(clock):
    def explode(*args):
        raise RuntimeError("observer bug")

    engine = OCREngine([FakeProvider("a", _text(90))], clock=clock)
    result = asyncio.run(engine.extract(_image(), on_provider=explode))
    assert result.provider == "a"


def test_process_image_preprocesses_first(clock):
    p = FakeProvider("p", _text(90))
    engine = OCREngine([p], clock=clock)

    asyncio.run(engine.process_image(make_asset(size=(3840, 2160))))
    image, _, _ = p.calls[0]
    assert (image.width, image.height) == (1920, 1080)


def test_needs_a_provider():
    with pytest.raises(ValueError):
        OCREngine([])
