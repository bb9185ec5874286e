import numpy as np

# === Display Geometry ===
NUM_BARS = 64
TOTAL_ROWS = 21

# === Band Levels ===
PEAK_WEIGHT = 0.75
MEAN_WEIGHT = 0.25

# === Gain Control ===
INITIAL_PEAK = 0.25
PEAK_DECAY = 0.92
PEAK_FLOOR = 1e-3

# === Smoothing ===
BLEND = 0.65

# === Glyphs & Colors ===
CLEAR_SCREEN = "\033[2J\033[H"
RESET = "\033[0m"
FILL_GLYPH = "█"
DIVIDER_GLYPH = "─"
BLANK = " "
COLOR_GAMMA = 0.6
COLOR_THRESHOLDS = [0.2, 0.4, 0.6, 0.8]
COLOR_RAMP = [
    "\033[38;5;39m",   # teal
    "\033[38;5;48m",   # green
    "\033[38;5;190m",  # yellow
    "\033[38;5;208m",  # orange
    "\033[38;5;196m",  # red
]

# === Decoding ===
DEFAULT_AUDIO_FILE = "audio/test.mp3"
BLOCK_SIZE = 1152
INT16_SUBTYPES = ("PCM_16", "PCM_S8", "PCM_U8")

sample_formats = {
    "float32": {
        "np_format": np.float32,
        "scale": 1.0,
    },
    "int16": {
        "np_format": np.int16,
        "scale": 32768.0,
    },
}

# === Frame Pacing ===
FRAME_DELAY = 0.033  # not synced to playback, the sleep is the only pacing
SLOW_FRAME_FACTOR = 2
FRAME_HISTORY = 100
