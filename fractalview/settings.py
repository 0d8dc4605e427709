from dataclasses import dataclass, fields, replace

import yaml

from fractalview.datatypes import CoordinateTransform, InvalidParameterError
from fractalview.fractal import Julia, Mandelbrot
from fractalview.palette import ColormapPalette, Palette

FRACTAL_KINDS = ("mandelbrot", "julia")


@dataclass
class ViewSettings:
    fractal: str = "mandelbrot"
    julia_c: complex = 0j
    max_iterations: int = 150
    center: complex = -0.5 + 0j
    scale: float = 1.2
    hue_origin: float = 0.0
    hue_step: float = 1.0
    colormap: str | None = None  # None selects the HSL palette
    resolution: tuple = (800, 600)
    poll_interval_ms: int = 16


default_settings = ViewSettings()

julia_defaults = {"max_iterations": 500, "center": 0j, "scale": 1.2}


def mandelbrot_settings(settings):
    """Settings for the default Mandelbrot view, keeping presentation and window options."""
    return replace(
        settings,
        fractal="mandelbrot",
        max_iterations=default_settings.max_iterations,
        center=default_settings.center,
        scale=default_settings.scale,
    )


def julia_settings(settings, c):
    """Settings for the Julia set of `c`, keeping presentation and window options."""
    return replace(settings, fractal="julia", julia_c=complex(c), **julia_defaults)


def build_fractal(settings):
    if settings.fractal == "mandelbrot":
        return Mandelbrot(max_iterations=settings.max_iterations)
    if settings.fractal == "julia":
        return Julia(c=settings.julia_c, max_iterations=settings.max_iterations)
    raise InvalidParameterError(f"Unknown fractal kind: {settings.fractal!r}, expected one of {FRACTAL_KINDS}")


def build_palette(settings):
    if settings.colormap is None:
        return Palette(hue_origin=settings.hue_origin, hue_step=settings.hue_step)
    return ColormapPalette(hue_origin=settings.hue_origin, hue_step=settings.hue_step, colormap=settings.colormap)


def build_transform(settings, width, height):
    return CoordinateTransform.for_view(settings.center, settings.scale, width, height)


def _complex_to_dict(z):
    return {"x": z.real, "y": z.imag}


def settings_to_dict(settings):
    """Convert ViewSettings to a dictionary for YAML serialization."""
    return {
        "fractal": {
            "kind": settings.fractal,
            "julia_c": _complex_to_dict(settings.julia_c),
            "max_iterations": settings.max_iterations,
        },
        "location": {
            "center": _complex_to_dict(settings.center),
            "scale": settings.scale,
        },
        "presentation": {
            "hue_origin": settings.hue_origin,
            "hue_step": settings.hue_step,
            "colormap": settings.colormap,
        },
        "window": {
            "width": settings.resolution[0],
            "height": settings.resolution[1],
            "poll_interval_ms": settings.poll_interval_ms,
        },
    }


def dict_to_settings(settings_dict):
    """Convert a dictionary to a ViewSettings object. Missing entries keep their defaults."""
    if not isinstance(settings_dict, dict):
        raise InvalidParameterError(f"Settings must be a mapping, got {type(settings_dict).__name__}")
    fractal = settings_dict.get("fractal") or {}
    location = settings_dict.get("location") or {}
    presentation = settings_dict.get("presentation") or {}
    window = settings_dict.get("window") or {}

    def point(section, key, default):
        value = section.get(key)
        if value is None:
            return default
        return complex(float(value.get("x", 0.0)), float(value.get("y", 0.0)))

    try:
        settings = ViewSettings(
            fractal=str(fractal.get("kind", default_settings.fractal)).lower(),
            julia_c=point(fractal, "julia_c", default_settings.julia_c),
            max_iterations=int(fractal.get("max_iterations", default_settings.max_iterations)),
            center=point(location, "center", default_settings.center),
            scale=float(location.get("scale", default_settings.scale)),
            hue_origin=float(presentation.get("hue_origin", default_settings.hue_origin)),
            hue_step=float(presentation.get("hue_step", default_settings.hue_step)),
            colormap=presentation.get("colormap", default_settings.colormap),
            resolution=(
                int(window.get("width", default_settings.resolution[0])),
                int(window.get("height", default_settings.resolution[1])),
            ),
            poll_interval_ms=int(window.get("poll_interval_ms", default_settings.poll_interval_ms)),
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise InvalidParameterError(f"Malformed settings: {e}") from e
    validate_settings(settings)
    return settings


def validate_settings(settings):
    """Check everything a render needs, raising InvalidParameterError on the first problem."""
    build_fractal(settings)
    build_palette(settings)
    if not settings.scale > 0:
        raise InvalidParameterError(f"Scale must be positive, got {settings.scale}")
    if min(settings.resolution) <= 0:
        raise InvalidParameterError(f"Resolution must be positive, got {settings.resolution}")
    if settings.poll_interval_ms <= 0:
        raise InvalidParameterError(f"Poll interval must be positive, got {settings.poll_interval_ms}")


def load_settings(path):
    with open(path, "r") as file:
        return dict_to_settings(yaml.safe_load(file))


def save_settings(settings, path):
    with open(path, "w") as file:
        yaml.safe_dump(settings_to_dict(settings), file, default_flow_style=False, sort_keys=False)


def override_settings(settings, **overrides):
    """Return a copy of settings with every non-None override applied."""
    known = {f.name for f in fields(ViewSettings)}
    unknown = set(overrides) - known
    if unknown:
        raise InvalidParameterError(f"Unknown settings: {sorted(unknown)}")
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})
