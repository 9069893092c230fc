from typing import Dict, Final, Tuple

# Guide frame drawn over the live preview, as fractions of the displayed
# viewport (x, y, w, h).
GUIDE_X: Final[float] = 0.18
GUIDE_Y: Final[float] = 0.21
GUIDE_W: Final[float] = 0.64
GUIDE_H: Final[float] = 0.58

# Collector-number band: full guide width, bottom 20% of the guide height so the
# "NN/TTT" line is caught whether the card sits high or low in the guide.
CN_REGION_LEFT: Final[float] = 0.0
CN_REGION_TOP: Final[float] = 0.80
CN_REGION_WIDTH: Final[float] = 1.0
CN_REGION_HEIGHT: Final[float] = 0.20

# Ink sample: small square on the name banner, left-biased to stay off the text.
INK_REGION_LEFT: Final[float] = 0.01
INK_REGION_TOP: Final[float] = 0.52
INK_REGION_SIZE: Final[float] = 0.10

# Printed CN glyphs are ~10-15 px tall in the raw crop
OCR_UPSCALE: Final[int] = 2

# Tesseract settings for the collector-number line
CN_CHAR_WHITELIST: Final[str] = "0123456789/"
CN_PAGE_SEG_MODE: Final[int] = 7
TEXT_PAGE_SEG_MODE: Final[int] = 6

# Binarization
INVERT_BRIGHTNESS_BELOW: Final[int] = 128

# Ink classification
INK_COLOURS: Final[Dict[str, Tuple[int, int, int]]] = {
    "Amber": (244, 178, 35),
    "Amethyst": (124, 65, 130),
    "Emerald": (50, 144, 68),
    "Ruby": (213, 0, 55),
    "Sapphire": (0, 147, 201),
    "Steel": (151, 163, 174),
}
INK_SAMPLE_FRACTION: Final[float] = 0.5
INK_MIN_BRIGHTNESS: Final[int] = 30
INK_MAX_BRIGHTNESS: Final[int] = 240
INK_MAX_DISTANCE: Final[float] = 100.0
INK_SECONDARY_MIN_SHARE: Final[float] = 0.25

# Collector-number plausibility
MIN_SET_TOTAL: Final[int] = 100
SET_NUMBER_MIN: Final[int] = 1
SET_NUMBER_MAX: Final[int] = 30
SET_NUMBER_LOOKAHEAD: Final[int] = 16

# Set filter value meaning "every set"
ALL_SETS: Final[str] = "all"

MATCH_METHOD_CN: Final[str] = "cn"
MATCH_METHOD_CN_INK: Final[str] = "cn+ink"
