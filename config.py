# config.py
# The single source of truth for physical constants, integration parameters
# and rendering defaults of the magnetic pendulum fractal.

# --- Physics ---
GRAVITY = 9.8                 # Gravitational acceleration (m/s^2).
FRICTION = 0.01               # Linear air drag coefficient. Smaller values give a more chaotic image.
FORCE_EXPONENT = 2            # Magnetic force falls off as strength / d**FORCE_EXPONENT.
SINGULARITY_EPSILON = 1e-4    # Distance floor that keeps the magnetic force finite on top of a magnet.

# --- Integration & capture ---
TIME_STEP = 0.01              # Fixed RK4 step (seconds).
MAX_STEPS = 5000              # Step budget per pixel before a trajectory is declared unresolved.
CAPTURE_RADIUS = 0.3          # Capture is only declared while the bob is this close to a magnet.
CHECK_INTERVAL = 1            # Run the capture/bounds test every N steps.
SADDLE_GRID_SIZE = 301        # Grid points per axis of the potential map used to locate the saddles.

# --- View bounds ---
BOUNDS_PADDING = 0.5          # Extra margin around the magnet layout, as a fraction of its extent.
HEIGHT_LIMIT_RATIO = 0.5      # Rigour mode: highest release point, as a fraction of the rod length.
ESCAPE_BOX_SCALE = 2.0        # A bob leaving the view box scaled by this factor is out of bounds.

# --- Image ---
WIDTH = 400
HEIGHT = 400
SATURATION = 1.0
LIGHTNESS_MAX = 0.6           # Lightness of an instant capture.
LIGHTNESS_FLOOR = 0.1         # Lower clamp of the (1 - sqrt(progress)) shading factor.
BACKGROUND_COLOR = (0, 0, 0)  # Unresolved and unreachable pixels.

# --- Files ---
SYSTEM_CONFIG_FILE = 'config.json'
OUTPUT_FILENAME = 'magnetic_fractal.png'
RESULTS_FILENAME = 'render_results.npz'

# --- Logging ---
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
