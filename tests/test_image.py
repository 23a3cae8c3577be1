import numpy as np
import pytest

from directodom.image import (
    copy_image_pyramid,
    crop_image_factor,
    get_total_bytes,
    is_image_pyramid,
    is_stereo_pair,
    make_grad_image,
    make_grad_pyramid,
    make_image_pyramid,
    make_rand_mat8u,
    mat_set_roi,
    mat_set_win,
    threshold_depth,
)


def _ramp(rows, cols, step):
    return np.tile((np.arange(cols) * step).astype(np.uint8), (rows, 1))


def test_crop_image_factor():
    x = np.zeros((123, 321), dtype=np.uint8)
    c = crop_image_factor(x, 32)
    assert c.shape == (96, 320)


def test_crop_image_factor_no_change_returns_input():
    x = np.zeros((64, 32), dtype=np.uint8)
    assert crop_image_factor(x, 32) is x


def test_crop_image_factor_bad_factor():
    with pytest.raises(ValueError):
        crop_image_factor(np.zeros((4, 4)), 0)


def test_make_image_pyramid():
    image = make_rand_mat8u(123, 321)
    images = make_image_pyramid(image, 4)
    assert is_image_pyramid(images)
    assert [im.shape for im in images] == [(123, 321), (62, 161), (31, 81), (16, 41)]

    images[0] = np.zeros((111, 222), dtype=np.uint8)
    assert not is_image_pyramid(images)


def test_make_image_pyramid_constant_image():
    image = np.full((20, 30), 77, dtype=np.uint8)
    images = make_image_pyramid(image, 3)
    for level in images:
        assert level.dtype == np.uint8
        assert np.all(level == 77)


def test_make_image_pyramid_errors():
    with pytest.raises(ValueError):
        make_image_pyramid(np.zeros((0, 0), dtype=np.uint8), 2)
    with pytest.raises(ValueError):
        make_image_pyramid(np.zeros((4, 4), dtype=np.uint8), 0)


def test_is_image_pyramid_empty():
    assert is_image_pyramid([]) is False


def test_make_rand_mat8u():
    image = make_rand_mat8u(7)
    assert image.shape == (7, 7)
    assert image.dtype == np.uint8
    assert image.max() < 255
    assert make_rand_mat8u(3, 5).shape == (3, 5)


def test_mat_set_roi_partial_and_empty():
    mat = np.zeros((4, 4), dtype=np.uint8)
    assert mat_set_roi(mat, (2, 2, 5, 5), 9)
    assert mat[2:, 2:].sum() == 9 * 4
    assert mat[:2, :].sum() == 0
    assert not mat_set_roi(mat, (10, 10, 2, 2), 1)


def test_mat_set_win():
    mat = np.zeros((5, 5), dtype=np.uint8)
    assert mat_set_win(mat, (2, 2), (1, 1), 255)
    assert np.count_nonzero(mat) == 9
    assert mat[1:4, 1:4].min() == 255


def test_threshold_depth():
    depth = np.array([[1.0, 5.0], [3.0, 10.0]], dtype=np.float32)
    out = threshold_depth(depth, 4.0)
    np.testing.assert_array_equal(out, [[1.0, 0.0], [3.0, 0.0]])
    assert out.dtype == np.float32


def test_make_grad_image_constant_is_zero():
    grad = make_grad_image(np.full((6, 6), 100, dtype=np.uint8))
    assert grad.dtype == np.float32
    assert np.all(grad == 0)


def test_make_grad_image_ramp():
    grad = make_grad_image(_ramp(5, 6, 10))
    np.testing.assert_allclose(grad[:, 1:-1], 20.0 / 255.0, rtol=1e-6)
    np.testing.assert_allclose(grad[:, 0], 0.0)


def test_make_grad_pyramid_uint8():
    grads = make_grad_pyramid([_ramp(5, 6, 10)], to_uint8=True)
    assert grads[0].dtype == np.uint8
    assert np.all(grads[0][:, 1:-1] == 20)


def test_get_total_bytes():
    images = [np.zeros((10, 10), np.uint8), np.zeros((5, 5), np.uint8)]
    assert get_total_bytes(images) == 125


def test_is_stereo_pair():
    a = [np.zeros((4, 6)), np.zeros((2, 3))]
    b = [np.ones((4, 6)), np.ones((2, 3))]
    assert is_stereo_pair(a, b)
    assert not is_stereo_pair(a, b[:1])
    assert not is_stereo_pair(a, [np.ones((4, 6)), np.ones((3, 3))])


def test_copy_image_pyramid_is_independent():
    source = [np.zeros((3, 3), np.uint8)]
    target = copy_image_pyramid(source)
    target[0][0, 0] = 5
    assert source[0][0, 0] == 0
    assert target[0][0, 0] == 5