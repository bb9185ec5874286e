import logging
import os
import sys
import time
from collections import defaultdict
from datetime import datetime

import numpy as np
import psutil
import soundfile as sf

from barscope.config import (
    BLOCK_SIZE, INT16_SUBTYPES, sample_formats,
    FRAME_DELAY, SLOW_FRAME_FACTOR, FRAME_HISTORY,
)

logger = logging.getLogger('audio_engine')

# Performance tracking
process = psutil.Process(os.getpid())


def _setup_logger(debug: bool):
    """Attach a timestamped log file when debug is on - stdout belongs to the frame"""
    if not debug or any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return

    logger.setLevel(logging.DEBUG)

    log_dir = "logs"
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"audio_engine_{timestamp}.log")

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logger.info("=== Audio Engine Debug Session Started ===")
    logger.info(f"Log file: {log_file}")
    logger.info(f"Python version: {sys.version}")
    logger.info(f"Working directory: {os.getcwd()}")


def read_dtype_for(subtype: str) -> str:
    """Narrow PCM decodes as int16, everything else as float32"""
    return "int16" if subtype in INT16_SUBTYPES else "float32"


def to_mono(block: np.ndarray):
    """Channel 0 of a decoded block as float32 samples, or None if the dtype is unsupported"""
    fmt = sample_formats.get(block.dtype.name)
    if fmt is None:
        return None
    channel = block[:, 0] if block.ndim > 1 else block
    if fmt["scale"] == 1.0:
        return channel.astype(np.float32, copy=False)
    return channel.astype(np.float32) / np.float32(fmt["scale"])


class StageDebugTimer:
    def __init__(self):
        self.stage_times = defaultdict(float)
        self.global_start_time = 0.0
        self.global_time = 0.0

    def get_global_time(self):
        return time.time() - self.global_start_time

    def global_start(self):
        self.global_start_time = time.time()

    def start(self, stage_name):
        self.stage_times[stage_name] = time.time()

    def stop(self, stage_name):
        self.stage_times[stage_name] = time.time() - self.stage_times[stage_name]

    def global_stop(self):
        self.global_time = time.time() - self.global_start_time

        logger.debug("=== Stage Debug Timer ===")
        logger.debug(f"Total frame time: {self.global_time:.6f}s")
        for stage_name, stage_time in self.stage_times.items():
            percentage = (stage_time / self.global_time) * 100 if self.global_time > 0 else 0.0
            logger.debug(f"{stage_name}: {stage_time:.6f}s ({percentage:.1f}%)")


class AudioEngine:
    def __init__(self):
        self.source = None
        self.path = None
        self.read_dtype = "float32"
        self.debug = False
        # Frame accounting
        self.frames_rendered = 0
        self.frames_skipped = 0
        self.slow_frames = 0
        self.frame_times = []
        self.last_frame_time = None

    def initialize(self, path: str, debug=False):
        """Open the audio file and pick the sample format it will be decoded to"""
        _setup_logger(debug)
        self.debug = debug
        self.path = path
        self.source = sf.SoundFile(path)
        self.read_dtype = read_dtype_for(self.source.subtype)

        logger.info(
            f"Opened {path}: {self.source.format}/{self.source.subtype}, "
            f"{self.source.samplerate} Hz, {self.source.channels} ch, "
            f"decoding as {self.read_dtype}"
        )
        return self

    def frames(self):
        """Yield decoded blocks of BLOCK_SIZE frames, shape (frames, channels)"""
        return self.source.blocks(blocksize=BLOCK_SIZE, dtype=self.read_dtype, always_2d=True)

    def log_performance_metrics(self):
        """Track frame pacing, flag frames well over the target delay"""
        if not self.debug:
            return

        current_time = time.time()
        if self.last_frame_time is None:
            self.last_frame_time = current_time
            return
        frame_time = current_time - self.last_frame_time
        self.last_frame_time = current_time

        if frame_time > FRAME_DELAY * SLOW_FRAME_FACTOR:
            self.slow_frames += 1
            logger.warning(
                f"Slow frame detected: {frame_time * 1000:.1f}ms "
                f"(expected {FRAME_DELAY * 1000:.0f}ms), "
                f"Memory: {process.memory_info().rss / (1024 * 1024):.0f}MB RSS"
            )

        self.frame_times.append(frame_time)
        if len(self.frame_times) > FRAME_HISTORY:
            self.frame_times.pop(0)

        avg_frame_time = sum(self.frame_times) / len(self.frame_times)
        fps = 1.0 / avg_frame_time if avg_frame_time > 0 else 0
        logger.debug(f"Frame: {frame_time * 1000:.1f}ms, FPS: {fps:.1f}")

    def run(self, visualizer):
        """Decode -> render -> sleep until the file runs out. Returns frames rendered."""
        stage_timer = StageDebugTimer()
        logger.info("Starting audio engine main loop")

        try:
            blocks = iter(self.frames())
            while True:
                stage_timer.global_start()
                self.debug and stage_timer.start("decode")
                block = next(blocks, None)
                self.debug and stage_timer.stop("decode")
                if block is None:
                    break

                samples = to_mono(block)
                if samples is None:
                    logger.warning(f"Unsupported sample format: {block.dtype}")
                    self.frames_skipped += 1
                else:
                    self.debug and stage_timer.start("render")
                    if visualizer.render(samples):
                        self.frames_rendered += 1
                    self.debug and stage_timer.stop("render")

                self.debug and stage_timer.start("sleep")
                time.sleep(FRAME_DELAY)
                self.debug and stage_timer.stop("sleep")
                self.debug and stage_timer.global_stop()
                self.log_performance_metrics()
        except KeyboardInterrupt:
            logger.info("Visualizer stopped by user")
        finally:
            self.cleanup()

        logger.info(
            f"Frames rendered: {self.frames_rendered}, skipped: {self.frames_skipped}, "
            f"slow: {self.slow_frames}"
        )
        return self.frames_rendered

    def cleanup(self):
        """Release the decoder"""
        if self.source is not None and not self.source.closed:
            self.source.close()
