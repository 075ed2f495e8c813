"""
Orrery Scenarios
================

Headless scenarios exercising mode switching, time compression and
model agreement.
"""

from .mode_switch import ModeSwitchScenario
from .time_compression import TimeCompressionScenario
from .kepler_comparison import KeplerComparisonScenario

__all__ = [
    'ModeSwitchScenario',
    'TimeCompressionScenario',
    'KeplerComparisonScenario',
]
