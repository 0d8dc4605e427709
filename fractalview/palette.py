from dataclasses import dataclass, field

import numpy as np
from matplotlib import colormaps

from fractalview.datatypes import InvalidParameterError

BLACK = (0, 0, 0)
CYCLE_RATE = 0.06

# The whole color pipeline runs in float32 so truncated channels are reproducible.
F32 = np.float32
ONE_THIRD = F32(1.0) / F32(3.0)
TWO_THIRDS = F32(2.0) / F32(3.0)


def hsl_to_rgb(hue, saturation, lightness):
    """Standard HSL to RGB conversion in float32. Hue is taken modulo 1, all outputs are in [0, 1]."""
    hue, saturation, lightness = F32(hue), F32(saturation), F32(lightness)
    if lightness < F32(0.5):
        m2 = lightness * (saturation + F32(1.0))
    else:
        m2 = lightness + saturation - lightness * saturation
    m1 = lightness * F32(2.0) - m2
    return (
        _hue_to_channel(m1, m2, hue + ONE_THIRD),
        _hue_to_channel(m1, m2, hue),
        _hue_to_channel(m1, m2, hue - ONE_THIRD),
    )


def _hue_to_channel(m1, m2, hue):
    hue = hue % F32(1.0)
    if hue * F32(6.0) < F32(1.0):
        return m1 + (m2 - m1) * hue * F32(6.0)
    if hue * F32(2.0) < F32(1.0):
        return m2
    if hue * F32(3.0) < F32(2.0):
        return m1 + (m2 - m1) * (TWO_THIRDS - hue) * F32(6.0)
    return m1


def to_rgb8(components):
    # truncation, not rounding
    return tuple(int(F32(255.0) * F32(c)) for c in components[:3])


@dataclass
class Palette:
    """
    Maps normalized escape values to RGB colors along a hue ramp.

    The ramp starts at `hue_origin` and spans `hue_step` turns of the color
    wheel. `cycle()` slides the ramp back and forth; a render in progress is
    unaffected because render jobs work on their own copy.
    """

    hue_origin: float = 0.0
    hue_step: float = 1.0

    def hue(self, value):
        return F32(self.hue_origin) + F32(self.hue_step) * F32(value)

    def cycle(self):
        """Advance the hue origin, reversing direction once it has travelled past one turn."""
        if F32(self.hue_origin) * F32(self.hue_step) > F32(1.0):
            self.hue_step = -self.hue_step
        else:
            self.hue_origin = float(F32(self.hue_origin) + F32(CYCLE_RATE) * F32(self.hue_step))

    def color(self, value):
        if value == 0.0:
            return BLACK
        lightness = F32(0.95) * F32(value) + F32(0.05)
        return to_rgb8(hsl_to_rgb(self.hue(value), 1.0, lightness))


@dataclass
class ColormapPalette(Palette):
    """Palette that samples a matplotlib colormap instead of the HSL wheel."""

    colormap: str = "inferno"
    _cmap: object = field(init=False, repr=False, compare=False, default=None)

    def __post_init__(self):
        try:
            self._cmap = colormaps[self.colormap]
        except KeyError:
            raise InvalidParameterError(f"Unknown colormap: {self.colormap}") from None

    def color(self, value):
        if value == 0.0:
            return BLACK
        return to_rgb8(self._cmap(float(self.hue(value) % F32(1.0))))
