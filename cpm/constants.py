# --- MODEL DEFAULTS (The Physics Contract) ---
R_MIN = 0.2            # m (Minimum radius, fully compressed)
R_MAX = 0.8            # m (Maximum radius, fully relaxed)
VD_MAX = 1.5           # m/s (Maximum desired velocity)
BETA = 1.0             # Exponent of the velocity-radius law
TAU = 0.5              # s (Time to regrow from 0 to R_MAX)

# --- STRESS & DEATH ---
STRESS_RATE = 2.0      # Stress gained per second while crushed
STRESS_THRESHOLD = 8.0 # Stress needed for death
CRUSH_THRESHOLD = 3    # Minimum simultaneous contacts for stress to build

# --- TARGETS ---
ARRIVAL_RADIUS = 0.5   # m (How close to a target counts as "arrived")
NO_TARGET = -1

# --- SPAWNING ---
SPAWN_JITTER = 0.5     # m (Width of the random offset box around a spawn point)

# --- DEMOGRAPHICS ---
# Insertion order is the sampling order.
DEMOGRAPHICS = {
    "YOUTH": {
        "name": "Youth",
        "r_min": 0.15,
        "r_max": 0.6,
        "vd_max": 2.0,
        "stress_threshold": 2.0,
        "crush_threshold": 2,
        "proportion": 0.2,
        "color": "#4CAF50",  # Green
    },
    "ADULT": {
        "name": "Adult",
        "r_min": 0.2,
        "r_max": 0.8,
        "vd_max": 1.5,
        "stress_threshold": 3.0,
        "crush_threshold": 4,
        "proportion": 0.6,
        "color": "#2196F3",  # Blue
    },
    "ELDERLY": {
        "name": "Elderly",
        "r_min": 0.18,
        "r_max": 0.75,
        "vd_max": 0.8,
        "stress_threshold": 2.0,
        "crush_threshold": 2,
        "proportion": 0.2,
        "color": "#FF9800",  # Orange
    },
}
STANDARD_COLOR = "#2196F3"

# --- RENDERING (The Display Contract) ---
CANVAS_WIDTH_PX = 1000
CANVAS_HEIGHT_PX = 600
PIXELS_PER_METER = 50
VECTOR_SCALE = 0.5     # s (Velocity arrows show where a particle is in half a second)
MARKER_SIZE_PX = 4

# --- COLORS (BGR format for OpenCV) ---
COLOR_BG        = (255, 255, 255) # White
COLOR_BOUNDARY  = (0, 0, 0)       # Black
COLOR_FALLBACK  = (128, 128, 128) # Gray
COLOR_DESIRED   = (0, 128, 0)     # Green
COLOR_ESCAPE    = (0, 0, 255)     # Red
COLOR_CONTACT   = (0, 0, 255)     # Red
COLOR_FREE      = (255, 0, 0)     # Blue
TARGET_COLORS = [
    (0, 128, 0),     # Green
    (128, 0, 128),   # Purple
    (0, 165, 255),   # Orange
    (255, 255, 0),   # Cyan
    (255, 0, 255),   # Magenta
]

# --- SCHEDULER ---
SPEED_FACTOR = 0.5     # Wall-clock seconds per simulated second
FRAME_DELAY = 0.016    # s (Yield between rendered frames, ~60 FPS)
HISTORY_LENGTH = 500   # Points kept in the population chart
