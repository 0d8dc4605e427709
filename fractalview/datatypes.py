import math
from dataclasses import dataclass

# A point on the complex plane; both parts are 64-bit floats.
Point = complex


class InvalidParameterError(ValueError):
    """Raised when a fractal, transform or render job is built from invalid parameters."""


@dataclass(frozen=True)
class CoordinateTransform:
    """Affine mapping from (possibly fractional) pixel coordinates to the complex plane."""

    origin: complex
    step: float

    def __post_init__(self):
        if not self.step > 0 or not math.isfinite(self.step):
            raise InvalidParameterError(f"Transform step must be positive, got {self.step}")

    @classmethod
    def for_view(cls, center, scale, width, height):
        """
        Build the transform for a viewport of width x height pixels.

        `scale` is the half-extent of the shorter viewport side, so the view
        center lands on pixel (width / 2, height / 2).
        """
        if width <= 0 or height <= 0:
            raise InvalidParameterError(f"Viewport must be non-empty, got {width}x{height}")
        if not scale > 0:
            raise InvalidParameterError(f"Scale must be positive, got {scale}")
        s = scale / min(width, height)
        origin = complex(center) - complex(s * width, s * height)
        return cls(origin=origin, step=s * 2.0)

    def map(self, x, y) -> Point:
        return complex(x, y) * self.step + self.origin
