import numpy as np
import pytest
import pytesseract

from pagestream.errors import TextEngineError
from pagestream.image.processing import to_foreign_bitmap
from pagestream.ocr.reader import (
    TesseractTextEngine,
    build_word_frame,
    group_words_to_lines,
    lines_to_text,
    order_lines_by_columns,
    word_at_position,
)


def _tesseract_data():
    return {
        'level': [5, 5, 5, 5, 5],
        'page_num': [1, 1, 1, 1, 1],
        'block_num': [1, 1, 1, 1, 1],
        'par_num': [1, 1, 1, 1, 1],
        'line_num': [1, 1, 1, 2, 2],
        'word_num': [1, 2, 3, 1, 2],
        'left': [40, 10, 70, 10, 50],
        'top': [10, 10, 10, 40, 40],
        'width': [25, 25, 10, 30, 30],
        'height': [12, 12, 12, 14, 14],
        'conf': ['90', '85', '-1', '95', '80'],
        'text': ['World', 'Hello', '', 'Second', 'line'],
    }


def test_build_word_frame_filters_empty_and_low_conf():
    df = build_word_frame(_tesseract_data())
    assert list(df['text']) == ['World', 'Hello', 'Second', 'line']


def test_build_word_frame_applies_threshold():
    df = build_word_frame(_tesseract_data(), conf_threshold=85)
    assert list(df['text']) == ['World', 'Second']


def test_group_words_to_lines_orders_words_left_to_right():
    lines = group_words_to_lines(build_word_frame(_tesseract_data()))
    assert [ln['text'] for ln in lines] == ['Hello World', 'Second line']
    first = lines[0]
    assert (first['x'], first['y'], first['width'], first['height']) == (10, 10, 55, 12)
    assert [w['text'] for w in first['words']] == ['Hello', 'World']


def test_order_lines_single_column_sorted_by_position():
    lines = [
        {'x': 12, 'y': 30, 'width': 80, 'height': 12, 'text': 'Line 2'},
        {'x': 10, 'y': 10, 'width': 80, 'height': 12, 'text': 'Line 1'},
    ]
    assert [ln['text'] for ln in order_lines_by_columns(lines)] == ['Line 1', 'Line 2']


def test_order_lines_two_columns_read_left_column_first():
    lines = [
        {'x': 400, 'y': 12, 'width': 80, 'height': 12, 'text': 'R1'},
        {'x': 10, 'y': 10, 'width': 80, 'height': 12, 'text': 'L1'},
        {'x': 410, 'y': 28, 'width': 80, 'height': 12, 'text': 'R2'},
        {'x': 15, 'y': 30, 'width': 80, 'height': 12, 'text': 'L2'},
        {'x': 405, 'y': 52, 'width': 80, 'height': 12, 'text': 'R3'},
        {'x': 12, 'y': 50, 'width': 80, 'height': 12, 'text': 'L3'},
    ]
    ordered = [ln['text'] for ln in order_lines_by_columns(lines, max_cols=2)]
    assert ordered == ['L1', 'L2', 'L3', 'R1', 'R2', 'R3']


def test_word_at_position_hit_and_miss():
    lines = group_words_to_lines(build_word_frame(_tesseract_data()))
    word = word_at_position(lines, 45, 15)
    assert word is not None and word['text'] == 'World'
    assert word_at_position(lines, 200, 200) is None


def test_lines_to_text_joins_lines():
    lines = [{'text': 'a'}, {'text': ''}, {'text': 'b'}]
    assert lines_to_text(lines) == 'a\nb'


def test_tesseract_engine_feeds_rgb_pixels(monkeypatch):
    seen = {}

    def fake_image_to_data(img, lang, output_type):
        seen['img'] = img
        seen['lang'] = lang
        return _tesseract_data()

    monkeypatch.setattr(pytesseract, 'image_to_data', fake_image_to_data)
    img = np.zeros((20, 30, 3), dtype=np.uint8)
    img[..., 0] = 200
    engine = TesseractTextEngine(lang='deu', conf_threshold=0)

    assert engine.get_text(to_foreign_bitmap(img)) == 'Hello World\nSecond line'
    assert seen['lang'] == 'deu'
    assert seen['img'].shape == (20, 30, 3)
    assert seen['img'][0, 0, 0] == 200
    word = engine.get_word_from_position(to_foreign_bitmap(img), 12, 45)
    assert word['text'] == 'Second'


def test_tesseract_engine_wraps_missing_binary(monkeypatch):
    def broken(*args, **kwargs):
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(pytesseract, 'image_to_data', broken)
    engine = TesseractTextEngine()
    with pytest.raises(TextEngineError):
        engine.get_text_boxes(to_foreign_bitmap(np.zeros((4, 4), dtype=np.uint8)))
