#!/usr/bin/env python3
"""
bipolar_bars.py

Decode an audio file and draw it as 64 bipolar bars in the terminal:
positive swings above the center line, negative swings below, with
auto-gain and frame-to-frame smoothing. Frames are paced by a fixed
33ms sleep, so this is a visual approximation of the audio, not a
synced playback view.

Usage:
    bipolar-bars [AUDIO_FILE] [--debug]
"""
import logging
import sys

from barscope.config import DEFAULT_AUDIO_FILE, RESET
from barscope.engine import AudioEngine
from barscope.visualizer import BipolarVisualizer

logger = logging.getLogger('audio_engine')


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    debug = '--debug' in argv
    paths = [a for a in argv if not a.startswith('--')]
    path = paths[0] if paths else DEFAULT_AUDIO_FILE

    engine = AudioEngine()
    try:
        engine.initialize(path, debug=debug)
        engine.run(BipolarVisualizer())
    except (RuntimeError, OSError) as e:
        logger.error(f"Failed to play {path}: {e}")
        return 1
    finally:
        print(RESET, end="", flush=True)
    return 0


if __name__ == '__main__':
    sys.exit(main())
