"""
Orrery Configuration
====================

Scene, clock and propagation parameters.
"""

from dataclasses import dataclass, field

from .context import PhysicsMode
from ..constants import (
    AU_SCALE_METERS,
    DEFAULT_SCENE_SCALE,
    GRAVITATIONAL_CONSTANT,
    KEPLER_EQUATION_ITERATIONS,
    MAX_FRAME_DELTA,
    MAX_SPEED_MULTIPLIER,
    MIN_SPEED_MULTIPLIER,
    SPEED_FACTOR,
)


@dataclass
class SceneParameters:
    """Mapping from physical units to scene units."""
    au_scale_meters: float = AU_SCALE_METERS  # Scene units per AU at scale 1.0
    scene_scale: float = DEFAULT_SCENE_SCALE
    
    @property
    def au_scale(self) -> float:
        """Scene units per AU."""
        return self.au_scale_meters * self.scene_scale
    
    def __post_init__(self):
        assert self.au_scale_meters > 0, "AU scale must be positive"
        assert self.scene_scale > 0, "Scene scale must be positive"


@dataclass
class ClockParameters:
    """Speed control, time scales and frame-delta handling."""
    # Speed multiplier (simulated seconds per real second)
    initial_speed: float = MIN_SPEED_MULTIPLIER
    min_speed: float = MIN_SPEED_MULTIPLIER
    max_speed: float = MAX_SPEED_MULTIPLIER
    speed_factor: float = SPEED_FACTOR
    
    # Frame delta cap (seconds)
    max_delta_seconds: float = MAX_FRAME_DELTA
    
    # Time scales
    time_scale: float = 1.0
    orbital_time_scale: float = 1.0
    rotation_time_scale: float = 0.1
    effects_time_scale: float = 1.0
    
    # Per-mode calibration (both propagators share one unit system)
    kepler_time_scale: float = 1.0
    nbody_time_scale: float = 1.0
    
    # Adaptive frame-delta smoothing
    adaptive_timestep: bool = False
    min_timestep: float = 1.0 / 120.0
    max_timestep: float = 1.0 / 30.0
    smoothing_factor: float = 0.1  # Weight of the newest raw delta
    adaptation_rate: float = 0.05
    history_length: int = 10
    performance_threshold: float = 0.016  # Seconds (about 60 FPS)
    
    def __post_init__(self):
        """Validate configuration."""
        assert 0 < self.min_speed <= self.max_speed, "Speed limits must satisfy 0 < min <= max"
        assert self.speed_factor > 1.0, "Speed factor must exceed 1"
        assert self.max_delta_seconds > 0, "Frame delta cap must be positive"
        assert self.time_scale >= 0 and self.orbital_time_scale >= 0, "Time scales must be non-negative"
        assert self.kepler_time_scale > 0 and self.nbody_time_scale > 0, "Mode scales must be positive"
        assert 0 < self.min_timestep <= self.max_timestep, "Adaptive timestep bounds are invalid"
        assert 0.0 <= self.smoothing_factor <= 1.0, "Smoothing factor must be in [0, 1]"
        assert self.history_length > 0, "History length must be positive"


@dataclass
class KeplerParameters:
    """Analytic propagation settings."""
    iterations: int = KEPLER_EQUATION_ITERATIONS
    rebase_interval_years: float = 1000.0
    continuity_tolerance: float = 1e-3  # Scene units, checked on mode switches
    
    def __post_init__(self):
        assert self.iterations > 0, "Iteration count must be positive"
        assert self.rebase_interval_years > 0, "Rebase interval must be positive"
        assert self.continuity_tolerance > 0, "Continuity tolerance must be positive"


@dataclass
class IntegratorParameters:
    """N-body integration settings."""
    method: str = 'leapfrog'  # 'leapfrog', 'symplectic_euler', 'rk4'
    frame: str = 'local'  # 'local' per-parent subsystems, 'global' single system
    step_years: float = 2.0**-16  # About 8 minutes
    max_steps_per_tick: int = 2048
    softening_au: float = 0.0
    gravitational_constant: float = GRAVITATIONAL_CONSTANT
    
    def __post_init__(self):
        assert self.step_years > 0, "Step size must be positive"
        assert self.max_steps_per_tick > 0, "Step cap must be positive"
        assert self.softening_au >= 0, "Softening must be non-negative"
        assert self.frame in ('local', 'global'), "Frame must be 'local' or 'global'"


@dataclass
class OrreryConfig:
    """Complete orrery configuration."""
    system_name: str = "Solar System"
    initial_mode: PhysicsMode = PhysicsMode.NBODY
    
    # Headless run defaults
    duration_seconds: float = 60.0  # Real seconds
    frame_rate_hz: float = 60.0
    
    # Component configurations
    scene: SceneParameters = field(default_factory=SceneParameters)
    clock: ClockParameters = field(default_factory=ClockParameters)
    kepler: KeplerParameters = field(default_factory=KeplerParameters)
    integrator: IntegratorParameters = field(default_factory=IntegratorParameters)
    
    # Output options
    output_rate_hz: float = 10.0  # History samples per real second
    save_trajectory: bool = True
    verbose: bool = True
    
    def __post_init__(self):
        """Validate configuration."""
        if isinstance(self.initial_mode, str):
            self.initial_mode = PhysicsMode(self.initial_mode)
        assert self.duration_seconds > 0, "Duration must be positive"
        assert self.frame_rate_hz > 0, "Frame rate must be positive"
        assert self.output_rate_hz > 0, "Output rate must be positive"


# Pre-defined configurations
def create_default_config() -> OrreryConfig:
    """Create the interactive default: n-body mode at real time."""
    return OrreryConfig()


def create_kepler_config() -> OrreryConfig:
    """Create configuration starting in analytic Kepler mode."""
    return OrreryConfig(initial_mode=PhysicsMode.KEPLER)


def create_high_speed_config() -> OrreryConfig:
    """Create configuration running at the maximum speed multiplier."""
    return OrreryConfig(
        clock=ClockParameters(initial_speed=MAX_SPEED_MULTIPLIER),
        duration_seconds=10.0,
    )
