"""
Progressive rendering of a fractal into an RGB buffer.

A FractalRendering starts a background worker that computes pixel colors in
row-major order and pushes them through a one-way channel. The owner calls
`drain()` as often as it likes to copy whatever has arrived into the image.

Dropping the FractalRendering is the only way to cancel it: once the
receiving end of the channel is garbage collected, the worker's next send
fails and it stops.
"""
import logging
import threading
import weakref
from copy import deepcopy
from queue import Empty, SimpleQueue
from time import perf_counter

import numpy as np

from fractalview.datatypes import InvalidParameterError

CHANNELS = 3


class PixelSender:
    """Producer end of a pixel channel."""

    def __init__(self, queue, closed):
        self._queue = queue
        self._closed = closed

    def send(self, color):
        """Queue one color. Returns False once the receiver is gone."""
        if self._closed.is_set():
            return False
        self._queue.put(color)
        return True


class PixelReceiver:
    """Consumer end of a pixel channel. Garbage collecting it closes the channel."""

    def __init__(self, queue, closed):
        self._queue = queue
        # The callback must not reference self, or the receiver would never be collected.
        self._finalizer = weakref.finalize(self, closed.set)

    def try_receive(self):
        """Return the next color without blocking. Raises queue.Empty if none is available yet."""
        return self._queue.get_nowait()


def open_channel():
    """Create an unbounded FIFO pixel channel and return its (sender, receiver) ends."""
    queue = SimpleQueue()
    closed = threading.Event()
    return PixelSender(queue, closed), PixelReceiver(queue, closed)


def format_duration(seconds):
    if seconds < 0.005:
        return f"{int(seconds * 1_000_000)} µs"
    if seconds < 1.0:
        return f"{int(seconds * 1000)} ms"
    return f"{seconds:.3f} s"


def compute_pixel(x, y, transform, fractal, palette):
    point = transform.map(x, y)
    try:
        value = fractal.evaluate(point)
    except ArithmeticError as e:
        logging.debug(f"Evaluation failed at {point}: {e}. Treating pixel as unescaped.")
        value = 0.0
    return palette.color(value)


def produce_pixels(sender, width, height, transform, fractal, palette):
    """Compute every pixel in row-major order and send it, stopping as soon as a send fails."""
    start_time = perf_counter()
    for y in range(height):
        for x in range(width):
            if not sender.send(compute_pixel(x, y, transform, fractal, palette)):
                logging.info(
                    f"Stopping {width}x{height} render of {fractal} after "
                    f"{format_duration(perf_counter() - start_time)}, receiver gone"
                )
                return
    logging.info(f"Rendered {width}x{height} {fractal} in {format_duration(perf_counter() - start_time)}.")


class FractalRendering:
    """A rendering, in progress or done, of a fractal into a width x height RGB image."""

    def __init__(self, width, height, transform, fractal, palette):
        if width <= 0 or height <= 0:
            raise InvalidParameterError(f"Rendering size must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.cursor = (0, 0)
        self.rowstride = self.width * CHANNELS
        self._image = np.zeros((self.height, self.width, CHANNELS), dtype=np.uint8)

        sender, self._receiver = open_channel()
        # The worker gets its own palette copy, so cycling the caller's palette only affects later renders.
        self.worker = threading.Thread(
            target=produce_pixels,
            args=(sender, self.width, self.height, transform, fractal, deepcopy(palette)),
            name=f"fractal-render-{self.width}x{self.height}",
            daemon=True,
        )
        self.worker.start()

    @property
    def complete(self):
        return self.cursor == (self.width, self.height)

    @property
    def image(self):
        """Read-only (height, width, 3) uint8 view of the image."""
        view = self._image.view()
        view.flags.writeable = False
        return view

    def image_buffer(self):
        """Packed row-major RGB bytes, `rowstride` bytes per row."""
        return self._image.tobytes()

    def drain(self):
        """
        Copy every pixel that has arrived so far into the image, without blocking.

        Returns True once the whole image has been received. Pixels before the
        cursor are never read or written again.
        """
        if self.complete:
            return True
        x, y = self.cursor
        while y < self.height:
            while x < self.width:
                try:
                    color = self._receiver.try_receive()
                except Empty:
                    self.cursor = (x, y)
                    return False
                self._image[y, x] = color
                x += 1
            x = 0
            y += 1
        self.cursor = (self.width, self.height)
        logging.debug(f"Received full {self.width}x{self.height} image.")
        return True
