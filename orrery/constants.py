"""
Physical and Simulation Constants
=================================

One unit system for both propagators: AU, years, solar masses.
"""

import numpy as np

# Gravitational constant in AU^3 / (Msun yr^2)
GRAVITATIONAL_CONSTANT = 4.0 * np.pi**2

# Julian year
SECONDS_PER_YEAR = 365.25 * 86400.0

# Scene units per AU at scene scale 1.0
AU_SCALE_METERS = 215.5
DEFAULT_SCENE_SCALE = 0.1

# Fixed Newton-Raphson iteration count for Kepler's equation
KEPLER_EQUATION_ITERATIONS = 10

# Speed multiplier limits (simulated seconds per real second)
MIN_SPEED_MULTIPLIER = 1.0
MAX_SPEED_MULTIPLIER = 6553600.0
SPEED_FACTOR = 2.0

# Frame delta cap (seconds)
MAX_FRAME_DELTA = 0.1
