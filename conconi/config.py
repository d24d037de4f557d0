"""Central config with step-test protocol defaults and analysis constants."""

# Protocol defaults (treadmill speeds set by hand at fixed intervals)
START_MINUTES: float = 0.0
END_MINUTES: float = 1000.0
SPEED_MIN_KMH: float = 6.0
SPEED_STEP_KMH: float = 1.0
TIME_STEP_MIN: float = 1.5

# Added to elapsed minutes so a sample exactly on a step boundary lands in the new step
SPEED_EPSILON: float = 0.001

# Trailing heart-rate readings averaged per step (steady state near the end of a step)
STEADY_STATE_SAMPLES: int = 5

# Breakpoint fitting
MIN_SPEED_LEVELS: int = 4
MIN_SLOPE_CHANGE: float = 1e-6  # relative to y range / x range
BOOTSTRAP_SAMPLES: int = 1000
CI_SIG_LEVEL: float = 0.05

# Presentation
DEFAULT_TEXT_SIZE: float = 5.0
GGPLOT_PT_PER_MM: float = 2.845

# Web UI
UI_HOST: str = "127.0.0.1"
UI_PORT: int = 8050
