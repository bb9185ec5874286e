"""
visualizer.py

Bipolar bar renderer for decoded mono audio.
Each frame:
- Samples are split into NUM_BARS chunks, positive and negative halves
  aggregated separately (peak-weighted mean)
- A running reference peak (fast attack, slow decay) normalizes the levels
- Levels are blended with the previous frame to keep bars from flickering
- Positive levels grow up from a center divider, negative levels grow down,
  colored on a five-step teal -> red ramp
"""
import sys
from bisect import bisect_right

import numpy as np

from barscope.config import (
    NUM_BARS, TOTAL_ROWS,
    PEAK_WEIGHT, MEAN_WEIGHT,
    INITIAL_PEAK, PEAK_DECAY, PEAK_FLOOR,
    BLEND,
    CLEAR_SCREEN, RESET, FILL_GLYPH, DIVIDER_GLYPH, BLANK,
    COLOR_GAMMA, COLOR_THRESHOLDS, COLOR_RAMP,
)


def _polarity_level(magnitudes: np.ndarray) -> float:
    if magnitudes.size == 0:
        return 0.0
    return PEAK_WEIGHT * float(magnitudes.max()) + MEAN_WEIGHT * float(magnitudes.mean())


def compute_bands(samples: np.ndarray, num_bars: int = NUM_BARS) -> np.ndarray:
    """
    Split samples into num_bars contiguous chunks and return a (num_bars, 2)
    array of (positive_level, negative_level). Chunks past the end of a short
    buffer stay (0, 0).
    """
    bands = np.zeros((num_bars, 2), dtype=np.float32)
    if len(samples) == 0:
        return bands

    chunk_size = -(-len(samples) // num_bars)
    for i in range(num_bars):
        chunk = samples[i * chunk_size:(i + 1) * chunk_size]
        if chunk.size == 0:
            continue
        bands[i, 0] = _polarity_level(chunk[chunk > 0])
        bands[i, 1] = _polarity_level(-chunk[chunk < 0])

    return bands


def color_for(level: float) -> str:
    """Map a [0, 1] level to its color escape"""
    scaled = max(level, 0.0) ** COLOR_GAMMA
    return COLOR_RAMP[bisect_right(COLOR_THRESHOLDS, scaled)]


def _row_counts(columns: np.ndarray, half_rows: int) -> np.ndarray:
    # scale in float32, then round half away from zero (levels are never negative)
    scaled = (columns.astype(np.float32) * np.float32(half_rows)).astype(np.float64)
    return np.floor(scaled + 0.5).astype(int)


def compose_frame(columns: np.ndarray) -> str:
    """Build the TOTAL_ROWS x NUM_BARS text grid for one frame of smoothed levels"""
    mid_row = TOTAL_ROWS // 2
    counts = _row_counts(columns, mid_row)
    heights = [
        (pos, neg, pos_rows, neg_rows)
        for (pos, neg), (pos_rows, neg_rows) in zip(columns.tolist(), counts.tolist())
    ]

    lines = []
    for row in range(TOTAL_ROWS):
        line = ""
        for pos, neg, pos_rows, neg_rows in heights:
            if row < mid_row:
                if row >= mid_row - pos_rows:
                    line += f"{color_for(pos)}{FILL_GLYPH}{RESET}"
                else:
                    line += BLANK
            elif row == mid_row:
                line += DIVIDER_GLYPH
            else:
                offset = row - mid_row - 1
                if offset < neg_rows:
                    line += f"{color_for(neg)}{FILL_GLYPH}{RESET}"
                else:
                    line += BLANK
        lines.append(line + "\n")

    return "".join(lines)


class BipolarVisualizer:
    """
    Stateful renderer. Holds the adaptive reference peak and the previous
    frame's smoothed columns, updated once per render() call.
    """

    def __init__(self, out=None):
        self.out = out
        self.peak = INITIAL_PEAK
        self.prev_columns = np.zeros((0, 2), dtype=np.float32)

    def track_peak(self, frame_peak: float) -> float:
        """Update the running peak and return the normalization denominator"""
        # kept in float32 like the bands it normalizes
        frame_peak = np.float32(frame_peak)
        peak = np.float32(self.peak)
        if frame_peak > peak:
            peak = frame_peak
        else:
            peak = peak * np.float32(PEAK_DECAY) + frame_peak * np.float32(1 - PEAK_DECAY)
        self.peak = float(max(peak, np.float32(PEAK_FLOOR)))
        return self.peak

    def smooth(self, bands: np.ndarray, effective_peak: float) -> np.ndarray:
        """Normalize bands against the peak and blend them into prev_columns"""
        if self.prev_columns.shape != (NUM_BARS, 2):
            self.prev_columns = np.zeros((NUM_BARS, 2), dtype=np.float32)

        norm = np.clip(bands / effective_peak, 0.0, 1.0)
        smoothed = (BLEND * norm + (1 - BLEND) * self.prev_columns).astype(np.float32)
        self.prev_columns = smoothed
        return smoothed

    def render(self, samples) -> bool:
        """Render one frame. Returns False (and does nothing) for an empty buffer."""
        samples = np.asarray(samples, dtype=np.float32)
        if samples.size == 0:
            return False

        bands = compute_bands(samples)
        frame_peak = float(bands.max())
        effective_peak = self.track_peak(frame_peak)
        smoothed = self.smooth(bands, effective_peak)

        out = self.out if self.out is not None else sys.stdout
        out.write(CLEAR_SCREEN + compose_frame(smoothed))
        out.flush()
        return True
