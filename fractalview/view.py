import logging
from copy import deepcopy
from dataclasses import replace

from fractalview.settings import build_fractal, build_palette, julia_settings, mandelbrot_settings


class ViewState:
    """
    What a viewer is looking at: the current settings, the live palette and an undo history.

    Every change pushes the previous settings onto the history. Whenever the
    settings are replaced wholesale (undo, reset, load) the palette is rebuilt
    from them, so the palette always matches the settings that would be saved.
    """

    def __init__(self, initial_settings):
        self.settings = deepcopy(initial_settings)
        self.history = [deepcopy(initial_settings)]
        self.palette = build_palette(self.settings)

    def fractal(self):
        return build_fractal(self.settings)

    def push(self, settings):
        self.history.append(deepcopy(self.settings))
        self.settings = settings

    def change(self, **changes):
        self.push(replace(self.settings, **changes))

    def zoom(self, point, factor):
        logging.info(f"Zooming by {factor} at {point}...")
        self.change(center=point, scale=self.settings.scale * factor)

    def julia(self, point):
        logging.info(f"Switching to the Julia set of {point}...")
        self.push(julia_settings(self.settings, point))

    def mandelbrot(self):
        logging.info("Switching to the Mandelbrot set...")
        self.push(mandelbrot_settings(self.settings))

    def change_iterations(self, adjust):
        fractal = self.fractal().with_adjusted_iterations(adjust)
        logging.info(f"Fractal is {fractal}")
        self.change(max_iterations=fractal.max_iterations)

    def cycle_palette(self):
        self.palette.cycle()
        self.settings.hue_origin = self.palette.hue_origin
        self.settings.hue_step = self.palette.hue_step

    def load(self, settings):
        self.push(deepcopy(settings))
        self.palette = build_palette(self.settings)

    def reset(self):
        logging.info("Resetting view...")
        self.settings = deepcopy(self.history[0])
        self.history = self.history[:1]
        self.palette = build_palette(self.settings)

    def go_back(self):
        """Restore the previous settings. Returns False when there is nothing to undo."""
        logging.info("Going back in history...")
        if len(self.history) <= 1:
            logging.info("No history left.")
            return False
        self.settings = self.history.pop()
        self.palette = build_palette(self.settings)
        return True
