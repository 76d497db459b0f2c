import numpy as np

from memeshot.image.trim import background_mask, find_content_box, trim_borders


def _white(width, height):
    return np.full((height, width, 4), 255, dtype=np.uint8)


def _framed(width=820, height=620, margin=10, color=(40, 80, 120, 255)):
    buf = _white(width, height)
    buf[margin:height - margin, margin:width - margin] = color
    return buf


def test_trim_removes_uniform_white_margin():
    buf = _framed()
    out = trim_borders(buf, 8)
    assert out.shape == (600, 800, 4)
    assert (out[0, 0] == [40, 80, 120, 255]).all()
    assert (out[-1, -1] == [40, 80, 120, 255]).all()


def test_trim_single_pixel_yields_one_by_one():
    buf = _white(50, 40)
    buf[17, 23] = (0, 0, 0, 255)
    out = trim_borders(buf, 8)
    assert out.shape == (1, 1, 4)
    assert (out[0, 0] == [0, 0, 0, 255]).all()


def test_trim_uniform_buffer_yields_one_by_one():
    out = trim_borders(_white(30, 20), 8)
    assert out.shape == (1, 1, 4)
    box = find_content_box(_white(30, 20), 8)
    assert (box.top, box.bottom, box.left, box.right) == (0, 0, 0, 0)


def test_trim_fully_transparent_buffer_yields_one_by_one():
    buf = np.zeros((10, 10, 4), dtype=np.uint8)
    assert trim_borders(buf).shape == (1, 1, 4)


def test_transparent_pixels_count_as_background_regardless_of_color():
    buf = np.zeros((20, 20, 4), dtype=np.uint8)  # transparent black
    buf[5:10, 6:12] = (200, 10, 10, 255)
    out = trim_borders(buf, 0)
    assert out.shape == (5, 6, 4)


def test_near_white_within_tolerance_is_trimmed():
    buf = np.full((20, 20, 4), 250, dtype=np.uint8)
    buf[:, :, 3] = 255
    buf[8:12, 8:12] = (0, 0, 0, 255)
    assert trim_borders(buf, 8).shape == (4, 4, 4)
    # with zero tolerance 250 is content
    assert trim_borders(buf, 0).shape == (20, 20, 4)


def test_trim_without_margin_returns_same_buffer():
    buf = np.zeros((12, 15, 4), dtype=np.uint8)
    buf[:, :] = (10, 20, 30, 255)
    assert trim_borders(buf, 8) is buf


def test_trim_does_not_mutate_input():
    buf = _framed(40, 30, margin=5)
    before = buf.copy()
    out = trim_borders(buf, 8)
    out[:] = 0
    assert (buf == before).all()


def test_trim_is_idempotent():
    rng = np.random.default_rng(7)
    buffers = [_framed(60, 50, margin=7), _white(10, 10)]
    noisy = _white(64, 48)
    noisy[10:30, 5:40] = rng.integers(0, 256, size=(20, 35, 4), dtype=np.uint8)
    buffers.append(noisy)
    for buf in buffers:
        for tol in (0, 8, 40):
            once = trim_borders(buf, tol)
            twice = trim_borders(once, tol)
            assert once.shape == twice.shape
            assert (once == twice).all()


def test_larger_tolerance_trims_at_least_as_much():
    buf = _white(60, 60)
    buf[10:50, 10:50] = (245, 245, 245, 255)  # faint ring
    buf[20:40, 20:40] = (0, 0, 0, 255)
    loose = find_content_box(buf, 5)
    tight = find_content_box(buf, 20)
    assert loose.contains(tight)
    assert (loose.width, loose.height) == (40, 40)
    assert (tight.width, tight.height) == (20, 20)


def test_horizontal_scan_limited_to_content_rows():
    buf = _white(30, 30)
    buf[10:20, 5:25] = (0, 0, 0, 255)
    box = find_content_box(buf, 8)
    assert (box.top, box.bottom, box.left, box.right) == (10, 19, 5, 24)


def test_background_mask_rgb_buffer_is_opaque():
    rgb = np.full((4, 4, 3), 255, dtype=np.uint8)
    rgb[0, 0] = (0, 0, 0)
    mask = background_mask(rgb, 8)
    assert mask.sum() == 15
    assert not mask[0, 0]
