import sys
import shutil
import argparse

import numpy as np
from PIL import Image, ImageGrab, UnidentifiedImageError

from ascii_scaler import SourceImage, scale

MAXWIDTH = 80 # fallback number of characters per line
MAXHEIGHT = 24
STYLEBIAS = 2.5 # adjust aspect ratio based on font and line formatting (terminal-dependent)

ERRORS = {
    "invalid_in": "Not a valid input file path.",
    "invalid_image": "Could not decode image file.",
    "no_clipboard": "No image found on the clipboard.",
    "clipboard_unavailable": "Clipboard is not accessible on this system.",
    "short_map": "ASCII map has too few values.",
    "invalid_dim": "Dimensions must be non-negative integers.",
}

ascii_map = " .^,:;Il!i~+_-?][}{1)(|/tfjrxnuvczXYUJCLQ0OZmwqpdbkhao*#MW&8%B@$" # revised from https://stackoverflow.com/a/66140774 without escape-chars

def normalize(data, amap):
    indices = np.rint((data / 255) * (len(amap) - 1))
    return np.clip(indices, 0, len(amap) - 1).astype(int)

def from_pil(image):
    rgba = image.convert("RGBA")
    return SourceImage.from_bytes(rgba.width, rgba.height, rgba.tobytes())

def load_file(fpath):
    '''
    desc: load and decode an image file
    params:
        fpath = path to image file
    return: SourceImage (owned RGBA copy)
    '''

    try:
        with Image.open(fpath) as image:
            return from_pil(image)
    except FileNotFoundError:
        raise ValueError(ERRORS["invalid_in"])
    except UnidentifiedImageError:
        raise ValueError(ERRORS["invalid_image"])

def load_clipboard():
    try:
        content = ImageGrab.grabclipboard()
    except (NotImplementedError, OSError):
        raise ValueError(ERRORS["clipboard_unavailable"])

    if content is None:
        raise ValueError(ERRORS["no_clipboard"])

    # some platforms hand back copied file names instead of pixels
    if isinstance(content, list):
        for fpath in content:
            try:
                return load_file(fpath)
            except ValueError:
                continue
        raise ValueError(ERRORS["no_clipboard"])

    return from_pil(content)

def fit_dimensions(src_w, src_h, width=None, height=None, terminal=None, bias=STYLEBIAS):
    '''
    desc: resolve the character grid size for a source image
    params:
        src_w, src_h = source pixel dimensions
        width, height = explicit sizes (either may be None)
        terminal = (columns, lines) to fit into when neither size is given
        bias = char cell height / width
    return: (width, height) in characters
    '''

    if width is not None and height is not None:
        return width, height
    if not src_w or not src_h:
        return width or 0, height or 0

    aspect = bias * (src_w / src_h)
    if width is not None:
        return width, round(width / aspect)
    if height is not None:
        return round(height * aspect), height

    columns, lines = terminal or (MAXWIDTH, MAXHEIGHT)
    lines = max(lines - 1, 0) # leave room for the prompt
    width = columns
    height = round(width / aspect)
    if height > lines:
        height = lines
        width = min(columns, round(height * aspect))
    return width, height

def to_ascii(grid, asciimap=ascii_map):
    if len(asciimap) < 2:
        raise ValueError(ERRORS["short_map"])

    out = ''
    for row in normalize(grid.rows(), asciimap):
        out += ''.join(asciimap[i] for i in row) + '\n'
    return out

def dimension(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(ERRORS["invalid_dim"])
    if number < 0:
        raise argparse.ArgumentTypeError(ERRORS["invalid_dim"])
    return number

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Convert an image to ASCII art')
    parser.add_argument('path', nargs='?', help='Image file (default: read the clipboard)')
    parser.add_argument('-W', '--width', type=dimension, help='Characters per line (default: terminal width)')
    parser.add_argument('-H', '--height', type=dimension, help='Number of lines (default: from aspect ratio)')
    parser.add_argument('-m', '--map', default=ascii_map, help='Characters ordered dark to light')
    parser.add_argument('-o', '--output', help='Write to file instead of stdout')
    parser.add_argument('--raw', action='store_true', help='Print brightness values instead of characters')
    return parser.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)

    try:
        image = load_file(args.path) if args.path else load_clipboard()
        size = fit_dimensions(
            image.width, image.height, args.width, args.height,
            terminal=tuple(shutil.get_terminal_size((MAXWIDTH, MAXHEIGHT)))
        )
        grid = scale(image, *size)
        out = str(grid) if args.raw else to_ascii(grid, args.map)
        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(out)
        else:
            sys.stdout.write(out)
    except (ValueError, OSError) as e:
        sys.exit(str(e))

if __name__ == '__main__':
    main()
