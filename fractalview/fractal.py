import math
import numbers
from dataclasses import dataclass, replace

import numpy as np
from numba import njit

from fractalview.datatypes import InvalidParameterError

ESCAPE_RADIUS_SQUARED = 4.0


@njit
def escape_time(z, c, max_iterations):
    """
    Iterate z = z^2 + c and return the first iteration index at which |z|^2 > 4.

    Returns 0 when the point never escapes within max_iterations steps. An
    escape on the very first check also returns 0, so both cases share the
    "inside" encoding.
    """
    for i in range(max_iterations):
        if z.real * z.real + z.imag * z.imag > ESCAPE_RADIUS_SQUARED:
            return i
        z = z * z + c
    return 0


@dataclass(frozen=True)
class Fractal:
    """Base class for escape-time fractals. Instances are immutable and safe to share across threads."""

    def __post_init__(self):
        if (
            not isinstance(self.max_iterations, numbers.Integral)
            or isinstance(self.max_iterations, bool)
            or self.max_iterations <= 0
        ):
            raise InvalidParameterError(f"max_iterations must be a positive integer, got {self.max_iterations!r}")
        object.__setattr__(self, "max_iterations", int(self.max_iterations))

    def escape_iteration(self, point):
        """Raw escape iteration for `point`. Every fractal variant must override this."""
        raise NotImplementedError

    def evaluate(self, point) -> float:
        """Escape iteration divided by max_iterations, as a float32 in [0, 1). 0 means inside."""
        i = self.escape_iteration(complex(point))
        return float(np.float32(i) / np.float32(self.max_iterations))

    def with_adjusted_iterations(self, adjust):
        """Return a copy of this fractal with max_iterations replaced by adjust(max_iterations)."""
        return replace(self, max_iterations=adjust(self.max_iterations))


@dataclass(frozen=True)
class Mandelbrot(Fractal):
    max_iterations: int = 150

    def escape_iteration(self, point):
        return escape_time(0j, point, self.max_iterations)

    def __str__(self):
        return f"Mandelbrot ({self.max_iterations})"


@dataclass(frozen=True)
class Julia(Fractal):
    c: complex
    max_iterations: int = 500

    def __post_init__(self):
        super().__post_init__()
        c = complex(self.c)
        if not (math.isfinite(c.real) and math.isfinite(c.imag)):
            raise InvalidParameterError(f"Julia constant must be finite, got {self.c!r}")
        object.__setattr__(self, "c", c)

    def escape_iteration(self, point):
        return escape_time(point, self.c, self.max_iterations)

    def __str__(self):
        return f"Julia {self.c} ({self.max_iterations})"


def iteration_step(max_iterations):
    """Detail step that grows by a factor of ten with every decade of max_iterations / 3."""
    third = max_iterations // 3
    magnitude = int(math.log10(third)) if third > 0 else 0
    return 10 ** max(0, magnitude)


def increase_iterations(max_iterations):
    return max_iterations + iteration_step(max_iterations)


def decrease_iterations(max_iterations):
    return max(max_iterations - iteration_step(max_iterations), 1)
