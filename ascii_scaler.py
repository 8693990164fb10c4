import math
from fractions import Fraction
from typing import NamedTuple

import numpy as np

ERRORS = {
    "invalid_length": "Pixel data length is not a multiple of 4 (RGBA).",
    "size_mismatch": "Pixel data length does not match 4 * width * height.",
    "invalid_dims": "Image dimensions must be non-negative.",
    "invalid_target": "Target length must be non-negative.",
    "invalid_ratio": "Ratio must not be negative.",
    "short_buffer": "Grayscale buffer is smaller than width * height.",
    "out_of_bounds": "Tried accessing outside of image bounds",
}

class InvalidInput(ValueError):
    pass

class InternalInvariantViolation(AssertionError):
    # raised when a source index falls outside the grayscale buffer
    pass

class Span(NamedTuple):
    start: int
    end: int

    @property
    def size(self):
        return self.end - self.start

    def indices(self):
        return range(self.start, self.end)

class SourceImage:
    '''
    desc: RGBA image, row-major, 4 bytes per pixel
    params:
        width, height = pixel dimensions
        data = uint8 array of length 4*width*height
    '''

    def __init__(self, width, height, data):
        if width < 0 or height < 0:
            raise InvalidInput(ERRORS["invalid_dims"])
        if not isinstance(data, np.ndarray):
            data = np.frombuffer(data, dtype=np.uint8)
        if data.size != 4 * width * height:
            raise InvalidInput(ERRORS["size_mismatch"])
        self.width = width
        self.height = height
        self.data = data

    @classmethod
    def from_buffer(cls, width, height, buf):
        # zero-copy, read-only view
        view = np.frombuffer(buf, dtype=np.uint8)
        view.flags.writeable = False
        return cls(width, height, view)

    @classmethod
    def from_bytes(cls, width, height, data):
        return cls(width, height, np.frombuffer(bytes(data), dtype=np.uint8))

class OutputGrid:
    def __init__(self, width, height, data):
        self.width = width
        self.height = height
        self.data = data

    def rows(self):
        return self.data.reshape(self.height, self.width)

    def __str__(self):
        return ''.join(str(row.tolist()) + '\n' for row in self.rows())

def to_grayscale(data):
    '''
    desc: reduce RGBA groups to one brightness sample each
    params:
        data = bytes-like or uint8 array, length a multiple of 4
    return: uint8 array, one sample per pixel
    '''

    pixels = np.frombuffer(data, dtype=np.uint8) if not isinstance(data, np.ndarray) else data.reshape(-1)
    if pixels.size % 4:
        raise InvalidInput(ERRORS["invalid_length"])

    groups = pixels.reshape(-1, 4).astype(np.uint32)
    average = groups[:, :3].sum(axis=1) // 3

    # transparency darkens: cap brightness to alpha
    gray = np.minimum(average, groups[:, 3]).astype(np.uint8)
    gray.flags.writeable = False
    return gray

def partition(target_len, ratio):
    '''
    desc: split a source axis into target_len contiguous spans
    params:
        target_len = number of output cells on this axis
        ratio = source length / target length
    return: list of Span, last one ending at floor(ratio * target_len)
    '''

    if target_len < 0:
        raise InvalidInput(ERRORS["invalid_target"])
    if ratio < 0:
        raise InvalidInput(ERRORS["invalid_ratio"])

    step = Fraction(ratio)
    counter = Fraction(0)
    spans = []
    for _ in range(target_len):
        start = math.floor(counter)
        counter += step
        spans.append(Span(start, math.floor(counter)))

    return spans

def axis_partition(source_len, target_len):
    if target_len == 0:
        return []
    return partition(target_len, Fraction(source_len, target_len))

def _block(gray, width, height, rows, cols):
    # bounds-checked view of gray[rows, cols] over a row-major buffer
    if rows.start < 0 or cols.start < 0 or rows.end > height or cols.end > width:
        raise InternalInvariantViolation(ERRORS["out_of_bounds"])
    return gray[rows.start:rows.end, cols.start:cols.end]

def resample(gray, sw, sh, tw, th):
    '''
    desc: box-filter a grayscale buffer down (or up) to a tw x th grid
    params:
        gray = grayscale samples, row-major, sw*sh long
        sw, sh = source dimensions
        tw, th = target dimensions
    return: OutputGrid
    '''

    gray = np.asarray(gray, dtype=np.uint8).reshape(-1)
    if gray.size < sw * sh:
        raise InternalInvariantViolation(ERRORS["short_buffer"])
    plane = gray[:sw * sh].reshape(sh, sw)

    row_ranges = axis_partition(sh, th)
    col_ranges = axis_partition(sw, tw)

    output = np.zeros(tw * th, dtype=np.uint8)
    index = 0
    for rows in row_ranges:
        for cols in col_ranges:
            block = _block(plane, sw, sh, rows, cols)
            # empty spans happen on upscaling and stay 0
            if block.size:
                output[index] = int(block.sum(dtype=np.uint64)) // block.size
            index += 1

    return OutputGrid(tw, th, output)

def scale(image, end_width, end_height):
    gray = to_grayscale(image.data)
    return resample(gray, image.width, image.height, end_width, end_height)
