# src/recipe_gateway/utils/clock.py
"""Time sources. Components take one of these so tests can move time by hand."""

import time
from collections.abc import Callable

Clock = Callable[[], float]

wall_clock: Clock = time.time
monotonic_clock: Clock = time.monotonic
