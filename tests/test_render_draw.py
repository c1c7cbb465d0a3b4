import numpy as np
import pytest

from pagestream.docs.model import Page
from pagestream.image.processing import Rect
from pagestream.render.draw import draw_page, normalize_rotation, render_region, rotate_bitmap


def test_draw_page_fills_canvas_in_place():
    # Blue page drawn into a black canvas of a different size
    img = np.zeros((40, 20, 3), dtype=np.uint8)
    img[:] = (0, 0, 255)
    canvas = np.zeros((80, 40, 3), dtype=np.uint8)
    out = draw_page(img, canvas)
    assert out is canvas
    assert (canvas[..., 2] == 255).all()
    assert (canvas[..., 0] == 0).all()


def test_draw_page_gray_into_rgb_canvas():
    gray = np.full((10, 10), 77, dtype=np.uint8)
    canvas = np.zeros((10, 10, 3), dtype=np.uint8)
    draw_page(gray, canvas)
    assert (canvas == 77).all()


def test_rotate_bitmap_swaps_axes():
    img = np.zeros((10, 30, 3), dtype=np.uint8)
    img[0, 0] = 255
    assert rotate_bitmap(img, 0) is img
    assert rotate_bitmap(img, 90).shape == (30, 10, 3)
    assert rotate_bitmap(img, 180).shape == (10, 30, 3)
    # top-left pixel ends up top-right after a clockwise quarter turn
    assert rotate_bitmap(img, 90)[0, 9, 0] == 255


def test_normalize_rotation():
    assert normalize_rotation(450) == 90
    assert normalize_rotation(-90) == 270
    with pytest.raises(ValueError):
        normalize_rotation(45)


def test_render_region_crops_zooms_and_rotates():
    img = np.zeros((40, 60, 3), dtype=np.uint8)
    out = render_region(img, Rect(0, 0, 30, 10), zoom=2.0, rotation=270)
    assert out.shape == (60, 20, 3)


def test_page_draw_after_close_is_refused():
    page = Page.from_image(3, np.full((4, 6), 9, dtype=np.uint8))
    assert (page.width, page.height) == (6, 4)
    assert page.get_size(2.0) == (12.0, 8.0)
    canvas = np.zeros((2, 3), dtype=np.uint8)
    with page:
        assert page.draw(canvas)
    assert (canvas == 9).all()
    assert page.is_closed
    assert page.draw(canvas) is False
