import math

import cv2
import numpy as np
import pytest

from pagestream.errors import DecodeError
from pagestream.image.processing import (
    Rect,
    apply_gamma,
    clamp_rect,
    decode_image,
    extract_region,
    from_foreign_bitmap,
    gamma_table,
    placeholder_image,
    to_foreign_bitmap,
)


def _random_rgb(width=64, height=48, seed=7):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def _png(img):
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


def test_decode_image_returns_rgb_order():
    bgr = np.zeros((4, 6, 3), dtype=np.uint8)
    bgr[:] = (30, 20, 10)
    img = decode_image(_png(bgr))
    assert img.shape == (4, 6, 3)
    assert tuple(img[0, 0]) == (10, 20, 30)


def test_decode_image_keeps_grayscale():
    gray = np.full((5, 7), 123, dtype=np.uint8)
    img = decode_image(_png(gray))
    assert img.ndim == 2
    assert img.shape == (5, 7)
    assert img[2, 3] == 123


def test_decode_image_composites_transparency_on_white():
    bgra = np.zeros((3, 3, 4), dtype=np.uint8)
    img = decode_image(_png(bgra))
    assert img.shape == (3, 3, 3)
    assert (img == 255).all()


@pytest.mark.parametrize("payload", [b"", b"definitely not an image"])
def test_decode_image_rejects_bad_payload(payload):
    with pytest.raises(DecodeError):
        decode_image(payload)


def test_placeholder_is_a_fresh_copy_each_time():
    a = placeholder_image()
    b = placeholder_image()
    assert a.shape == b.shape == (800, 600)
    a[:] = 0
    assert placeholder_image().max() == 255
    assert b.max() == 255


def test_placeholder_falls_back_when_path_is_unreadable(tmp_path):
    img = placeholder_image(str(tmp_path / "missing.png"))
    assert img.shape == (800, 600)


def test_clamp_rect_clips_to_bounds():
    assert clamp_rect(Rect(-5, -5, 30, 1000), 20, 40) == (0, 0, 20, 40)
    assert clamp_rect(Rect(2, 3, 10, 12), 20, 40) == (2, 3, 10, 12)


def test_extract_region_outside_bounds_falls_back_to_full_image():
    img = _random_rgb()
    out = extract_region(img, Rect(500, 500, 600, 600), zoom=1.0)
    assert out.shape == img.shape
    assert np.array_equal(out, img)


def test_extract_region_negative_area_falls_back_to_full_image():
    img = _random_rgb()
    out = extract_region(img, Rect(30, 30, 10, 10), zoom=0.5)
    assert out.shape[:2] == (24, 32)


def test_extract_region_rounds_output_size():
    img = _random_rgb(width=10, height=10)
    out = extract_region(img, Rect(0, 0, 10, 5), zoom=1.25)
    # 10 * 1.25 = 12.5 -> 13, 5 * 1.25 = 6.25 -> 6
    assert out.shape[:2] == (6, 13)


def test_extract_region_never_produces_empty_image():
    img = _random_rgb()
    out = extract_region(img, Rect(0, 0, 3, 3), zoom=0.001)
    assert out.shape[:2] == (1, 1)


def test_extract_region_noop_returns_same_array():
    img = _random_rgb()
    assert extract_region(img) is img
    assert extract_region(img, Rect(0, 0, 64, 48), zoom=1.0, gamma=1.0) is img


def test_extract_region_does_not_modify_source():
    img = _random_rgb()
    before = img.copy()
    extract_region(img, Rect(5, 5, 20, 20), zoom=3.0, gamma=0.5)
    assert np.array_equal(img, before)


def test_crop_then_scale_matches_single_call():
    img = _random_rgb()
    rect = Rect(10, 5, 40, 25)
    fused = extract_region(img, rect, zoom=2.0)

    cropped = extract_region(img, rect, zoom=1.0)
    stepwise = extract_region(cropped, None, zoom=2.0)
    reference = cv2.resize(img[5:25, 10:40], (60, 40), interpolation=cv2.INTER_LINEAR)

    assert fused.shape == (40, 60, 3)
    assert np.array_equal(fused, stepwise)
    assert np.array_equal(fused, reference)


def test_gamma_table_formula():
    table = gamma_table(2.2)
    assert table.shape == (256,)
    for c in (0, 1, 64, 128, 200, 255):
        assert table[c] == math.floor(255 * (c / 255) ** 2.2 + 0.5)


def test_apply_gamma_noop_cases_return_same_array():
    img = _random_rgb()
    assert apply_gamma(img, None) is img
    assert apply_gamma(img, 1.0) is img
    assert apply_gamma(img, -0.5) is img


def test_apply_gamma_on_grayscale_and_color():
    gray = np.full((2, 2), 128, dtype=np.uint8)
    color = np.zeros((2, 2, 3), dtype=np.uint8)
    color[:] = (128, 64, 255)
    table = gamma_table(0.5)
    out_gray = apply_gamma(gray, 0.5)
    out_color = apply_gamma(color, 0.5)
    assert out_gray.shape == (2, 2)
    assert out_gray[0, 0] == table[128]
    assert tuple(out_color[1, 1]) == (table[128], table[64], table[255])


@pytest.mark.parametrize("gamma, low", [(0.5, 0), (1.0, 0), (2.2, 140)])
def test_gamma_round_trip_within_one_level(gamma, low):
    # gamma > 1 merges dark levels, so only the range it keeps distinct is checked
    levels = np.arange(low, 256).astype(np.uint8)
    gray = levels.reshape(1, -1)
    color = np.stack([levels, levels[::-1], levels], axis=-1).reshape(1, -1, 3)
    for img in (gray, color):
        back = apply_gamma(apply_gamma(img, gamma), 1.0 / gamma)
        diff = np.abs(back.astype(int) - img.astype(int))
        assert diff.max() <= 1


def test_to_foreign_bitmap_color_is_bgr():
    img = np.zeros((3, 5, 3), dtype=np.uint8)
    img[0, 0] = (10, 20, 30)
    fb = to_foreign_bitmap(img)
    assert (fb.width, fb.height, fb.bpp) == (5, 3, 24)
    assert fb.palette is None
    assert len(fb.data) == 5 * 3 * 3
    assert fb.stride == 15
    assert bytes(fb.data[:3]) == bytes([30, 20, 10])


def test_to_foreign_bitmap_gray_has_identity_palette():
    img = np.arange(12, dtype=np.uint8).reshape(3, 4)
    fb = to_foreign_bitmap(img)
    assert (fb.width, fb.height, fb.bpp) == (4, 3, 8)
    assert len(fb.data) == 12
    assert fb.data[5] == 5
    assert len(fb.palette) == 256
    assert fb.palette[77] == (77, 77, 77)


def test_from_foreign_bitmap_restores_rgb():
    img = _random_rgb(width=9, height=4)
    assert np.array_equal(from_foreign_bitmap(to_foreign_bitmap(img)), img)
