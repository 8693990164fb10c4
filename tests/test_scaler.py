from fractions import Fraction
import math

import numpy as np
import pytest

from ascii_scaler import (
    InternalInvariantViolation,
    InvalidInput,
    SourceImage,
    Span,
    _block,
    axis_partition,
    partition,
    resample,
    scale,
    to_grayscale,
)

SEQUENTIAL_2X2 = bytes(range(16))

# 31 is skipped on purpose; pixel 7 is (28, 29, 30, 32)
SEQUENTIAL_4X4 = bytes(list(range(31)) + list(range(32, 65)))


def image(width, height, data):
    return SourceImage.from_bytes(width, height, data)


def test_partition_same_size():
    assert partition(4, 1.0) == [(0, 1), (1, 2), (2, 3), (3, 4)]


def test_partition_downscale():
    expected = [(0, 2), (2, 5), (5, 7), (7, 10), (10, 12),
                (12, 15), (15, 17), (17, 20), (20, 22), (22, 25)]
    assert partition(10, 2.5) == expected


def test_partition_fractional():
    assert partition(3, 1.5) == [(0, 1), (1, 3), (3, 4)]


def test_partition_upscale_has_empty_spans():
    spans = partition(3, Fraction(2, 3))
    assert spans == [(0, 0), (0, 1), (1, 2)]
    assert spans[0].size == 0
    assert list(spans[2].indices()) == [1]


def test_partition_empty_target():
    assert partition(0, 2.0) == []
    assert axis_partition(5, 0) == []


@pytest.mark.parametrize("source_len,target_len", [
    (1, 3), (7, 3), (100, 7), (3, 100), (1920, 80), (1080, 23), (10, 10),
])
def test_axis_partition_covers_source(source_len, target_len):
    spans = axis_partition(source_len, target_len)

    assert len(spans) == target_len
    assert spans[0].start == 0
    assert spans[-1].end == source_len
    for left, right in zip(spans, spans[1:]):
        assert left.start <= left.end == right.start <= right.end


@pytest.mark.parametrize("target_len,ratio", [(10, 0.1), (7, 1 / 3), (13, 2.7), (5, 0.5)])
def test_partition_last_end_is_floor_of_product(target_len, ratio):
    spans = partition(target_len, ratio)

    assert len(spans) == target_len
    assert spans[-1].end == math.floor(Fraction(ratio) * target_len)


def test_partition_rejects_negative_input():
    with pytest.raises(InvalidInput):
        partition(-1, 1.0)
    with pytest.raises(InvalidInput):
        partition(2, -0.5)


def test_grayscale_averages_and_clamps_to_alpha():
    data = bytes([30, 60, 90, 255,   # avg 60
                  255, 255, 255, 0,  # transparent white goes black
                  10, 10, 11, 5])    # avg 10, capped to 5
    assert to_grayscale(data).tolist() == [60, 0, 5]


def test_grayscale_truncates_average():
    assert to_grayscale(bytes([1, 1, 0, 255])).tolist() == [0]


def test_grayscale_rejects_partial_pixel():
    with pytest.raises(InvalidInput):
        to_grayscale(bytes(6))


def test_grayscale_is_read_only():
    gray = to_grayscale(bytes(8))
    with pytest.raises(ValueError):
        gray[0] = 1


def test_source_image_size_mismatch():
    with pytest.raises(InvalidInput):
        image(2, 2, bytes(15))
    with pytest.raises(InvalidInput):
        image(-1, 0, b'')


def test_source_image_borrowed_shares_memory():
    buf = bytearray(16)
    borrowed = SourceImage.from_buffer(2, 2, buf)
    owned = SourceImage.from_bytes(2, 2, buf)

    buf[0] = 200
    assert borrowed.data[0] == 200
    assert owned.data[0] == 0


def test_source_image_borrowed_is_read_only():
    borrowed = SourceImage.from_buffer(1, 1, bytearray(4))

    assert not borrowed.data.flags.writeable
    with pytest.raises(ValueError):
        borrowed.data[0] = 1


def test_source_image_accepts_plain_bytes():
    assert SourceImage(1, 1, bytes([1, 2, 3, 4])).data.tolist() == [1, 2, 3, 4]
    with pytest.raises(InvalidInput):
        SourceImage(1, 1, bytes(3))


def test_scale_empty_case():
    scaled = scale(image(0, 0, b''), 0, 0)

    assert scaled.width == 0
    assert scaled.height == 0
    assert len(scaled.data) == 0


def test_scale_zero_target_from_real_image():
    scaled = scale(image(2, 2, SEQUENTIAL_2X2), 0, 3)

    assert (scaled.width, scaled.height) == (0, 3)
    assert len(scaled.data) == 0
    assert str(scaled) == '[]\n[]\n[]\n'


def test_scale_same_size():
    scaled = scale(image(2, 2, bytes([5] * 16)), 2, 2)

    assert (scaled.width, scaled.height) == (2, 2)
    assert scaled.data.tolist() == [5, 5, 5, 5]


def test_scale_same_size_averaged():
    scaled = scale(image(2, 2, SEQUENTIAL_2X2), 2, 2)
    assert scaled.data.tolist() == [1, 5, 9, 13]


def test_scale_up_fills_empty_cells_with_zero():
    scaled = scale(image(2, 2, SEQUENTIAL_2X2), 3, 3)

    assert (scaled.width, scaled.height) == (3, 3)
    assert scaled.data.tolist() == [0, 0, 0, 0, 1, 5, 0, 9, 13]


def test_scale_down_truncates_average():
    scaled = scale(image(4, 4, SEQUENTIAL_4X4), 3, 3)

    assert (scaled.width, scaled.height) == (3, 3)
    assert scaled.data.tolist() == [1, 5, 11, 17, 21, 27, 42, 46, 52]


def test_scale_empty_source_to_nonzero_target():
    scaled = scale(image(0, 0, b''), 2, 2)
    assert scaled.data.tolist() == [0, 0, 0, 0]


def test_output_grid_str_dumps_rows():
    scaled = scale(image(2, 2, SEQUENTIAL_2X2), 2, 2)
    assert str(scaled) == '[1, 5]\n[9, 13]\n'


def test_resample_averages_whole_image():
    gray = np.array([10, 20, 30, 41], dtype=np.uint8)
    assert resample(gray, 2, 2, 1, 1).data.tolist() == [25]


def test_resample_short_buffer_is_fatal():
    gray = np.zeros(3, dtype=np.uint8)
    with pytest.raises(InternalInvariantViolation):
        resample(gray, 2, 2, 1, 1)


def test_block_out_of_bounds_is_fatal():
    plane = np.zeros((2, 2), dtype=np.uint8)

    assert _block(plane, 2, 2, Span(0, 2), Span(1, 2)).size == 2
    with pytest.raises(InternalInvariantViolation):
        _block(plane, 2, 2, Span(1, 3), Span(0, 1))


def test_invariant_violation_is_not_input_error():
    assert not issubclass(InternalInvariantViolation, ValueError)
    assert issubclass(InvalidInput, ValueError)
