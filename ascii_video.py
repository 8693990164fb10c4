import sys
import os
import time
import shutil
import argparse

import cv2 as cv
from tqdm import tqdm

from ascii_scaler import SourceImage, scale
from ascii_image import ascii_map, dimension, fit_dimensions, to_ascii, MAXWIDTH, MAXHEIGHT

ERRORS = {
    "invalid_ext": "Not a valid file extension.",
    "invalid_in": "Not a valid input file path.",
    "video_read": "Cannot read frame from video stream.",
    "invalid_video": "Could not decode video file.",
}

OUTNAME = 'out.txt'
VALID_EXTS = ('.mp4', '.m4v', '.avi', '.mkv')
FPS = 24
FRAME_BREAK = '\f\n'
HOME = '\x1b[H'
CLEAR = '\x1b[2J'

# https://docs.opencv.org/3.4/d4/d15/group__videoio__flags__base.html#gaeb8dd9c89c10a5c63c139bf7c4f5704d

def load_file(fpath):
    '''
    desc: load video file
    params:
        fpath = path to video file
    return: array of (raw BGR) frames from video, video properties
    '''

    fname = os.path.basename(fpath)
    fext = os.path.splitext(fname)[1].lower()
    if fext not in VALID_EXTS:
        raise NotImplementedError(ERRORS["invalid_ext"])
    if not os.path.isfile(fpath):
        raise ValueError(ERRORS["invalid_in"])

    data = cv.VideoCapture(fpath)
    framecount = int(data.get(cv.CAP_PROP_FRAME_COUNT))
    if not data.isOpened() or framecount <= 0:
        data.release()
        raise ValueError(ERRORS["invalid_video"])

    frames = []
    for _ in range(framecount):
        ret, frame = data.read()
        if not ret:
            data.release()
            raise ValueError(ERRORS["video_read"])
        frames.append(frame)

    properties = {
        'fps': data.get(cv.CAP_PROP_FPS) or FPS,
        'width': int(data.get(cv.CAP_PROP_FRAME_WIDTH)),
        'height': int(data.get(cv.CAP_PROP_FRAME_HEIGHT)),
        'framecount': len(frames),
    }

    data.release()
    return frames, properties

def frame_to_source(frame):
    rgba = cv.cvtColor(frame, cv.COLOR_BGR2RGBA)
    height, width = rgba.shape[:2]
    # borrow the converted frame, no second copy
    return SourceImage.from_buffer(width, height, rgba)

def convert(frames, c_res, asciimap=ascii_map):
    '''
    desc: convert frames to ascii text
    params:
        frames = array of raw BGR video frames
        c_res = (width, height) of each text frame in characters
        asciimap = characters ordered dark to light
    return: list of text frames
    '''

    frames_to_convert = tqdm(frames, desc='converting frames', file=sys.stderr)
    return [to_ascii(scale(frame_to_source(frame), *c_res), asciimap) for frame in frames_to_convert]

def write_file(texts, fname):
    with open(fname, 'w', encoding='utf-8') as f:
        for text in tqdm(texts, desc='writing frames to file', file=sys.stderr):
            f.write(text + FRAME_BREAK)

def play(texts, fps, out=None):
    out = out or sys.stdout
    delay = 1 / fps if fps > 0 else 1 / FPS
    out.write(CLEAR)
    for text in texts:
        out.write(HOME + text)
        out.flush()
        time.sleep(delay)

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Convert a video to ASCII text frames')
    parser.add_argument('path', help='Video file')
    parser.add_argument('-W', '--width', type=dimension, help='Characters per line (default: terminal width)')
    parser.add_argument('-H', '--height', type=dimension, help='Number of lines (default: from aspect ratio)')
    parser.add_argument('-m', '--map', default=ascii_map, help='Characters ordered dark to light')
    parser.add_argument('-o', '--output', default=OUTNAME, help='Output text file (default: %(default)s)')
    parser.add_argument('--play', action='store_true', help='Play in the terminal instead of writing a file')
    parser.add_argument('--fps', type=float, help='Playback rate (default: source rate)')
    return parser.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)

    try:
        frames, properties = load_file(args.path)
        c_res = fit_dimensions(
            properties['width'], properties['height'], args.width, args.height,
            terminal=tuple(shutil.get_terminal_size((MAXWIDTH, MAXHEIGHT)))
        )
        texts = convert(frames, c_res, args.map)
        if args.play:
            play(texts, args.fps or properties['fps'])
        else:
            write_file(texts, args.output)
    except (ValueError, NotImplementedError, OSError) as e:
        sys.exit(str(e))

if __name__ == '__main__':
    main()
