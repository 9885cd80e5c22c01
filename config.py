# Shared configuration and constants.

SEMITONES_PER_OCTAVE = 12
REFERENCE_OCTAVE = 4  # octave of middle C

# 88-key instrument bounds
LOWEST_NOTE = 21  # A0
HIGHEST_NOTE = 108  # C8

RANGE_HALF_SPAN = 24  # window is 2 * half span + 1 = 49 keys
DEFAULT_RANGE = (36, 84)  # C2..C6, shown when there is nothing to fit

MIN_OCTAVES = 1
MAX_OCTAVES = 3

DEFAULT_VELOCITY = 64
VIRTUAL_NOTE_HOLD_MS = 500
RESET_NOTE = 21  # A0 restarts the current exercise
UPCOMING_LABELS = 3

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
