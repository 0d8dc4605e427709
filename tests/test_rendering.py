import gc
import threading
import time
from queue import Empty

import numpy as np
import pytest

from fractalview.datatypes import CoordinateTransform, InvalidParameterError
from fractalview.fractal import Mandelbrot
from fractalview.palette import Palette
from fractalview.rendering import FractalRendering, compute_pixel, format_duration, open_channel

TIMEOUT = 10.0
UNIT = CoordinateTransform(origin=0j, step=1.0)


class ConstantFractal:
    def __init__(self, value):
        self.value = value

    def evaluate(self, point):
        return self.value


class GrayPalette:
    def color(self, value):
        level = int(255 * value)
        return (level, level, level)


class IndexFractal:
    """Encodes the pixel position in the escape value; blocks until each pixel is allowed through."""

    def __init__(self, width):
        self.width = width
        self.gate = threading.Semaphore(0)
        self.calls = 0

    def evaluate(self, point):
        self.gate.acquire()
        self.calls += 1
        return (point.imag * self.width + point.real + 1) / 1000

    def __str__(self):
        return "IndexFractal"


class IndexPalette:
    def color(self, value):
        return (round(value * 1000), 1, 2)


def drain_until(rendering, condition):
    deadline = time.monotonic() + TIMEOUT
    while True:
        done = rendering.drain()
        if condition(rendering, done):
            return done
        assert time.monotonic() < deadline, f"Timed out with cursor at {rendering.cursor}"
        time.sleep(0.001)


def drain_to_completion(rendering):
    return drain_until(rendering, lambda r, done: done)


def test_channel_is_fifo_and_non_blocking() -> None:
    sender, receiver = open_channel()
    with pytest.raises(Empty):
        receiver.try_receive()
    for i in range(5):
        assert sender.send((i, i, i))
    assert [receiver.try_receive() for _ in range(5)] == [(i, i, i) for i in range(5)]
    with pytest.raises(Empty):
        receiver.try_receive()


def test_send_fails_once_receiver_is_dropped() -> None:
    sender, receiver = open_channel()
    assert sender.send((1, 2, 3))
    del receiver
    gc.collect()
    assert not sender.send((4, 5, 6))


def test_constant_fractal_fills_white_image() -> None:
    rendering = FractalRendering(4, 4, UNIT, ConstantFractal(1.0), GrayPalette())
    assert drain_to_completion(rendering)
    assert rendering.cursor == (4, 4)
    assert rendering.complete
    assert np.all(rendering.image == 255)
    assert rendering.image_buffer() == bytes([255] * 4 * 4 * 3)


def test_drain_is_idempotent_once_complete() -> None:
    rendering = FractalRendering(5, 3, UNIT, ConstantFractal(0.5), GrayPalette())
    drain_to_completion(rendering)
    snapshot = rendering.image_buffer()
    for _ in range(10):
        assert rendering.drain()
        assert rendering.cursor == (5, 3)
        assert rendering.image_buffer() == snapshot


def test_partial_drain_resumes_at_first_missing_pixel() -> None:
    width, height = 4, 4
    fractal = IndexFractal(width)
    rendering = FractalRendering(width, height, UNIT, fractal, IndexPalette())

    assert not rendering.drain()
    assert rendering.cursor == (0, 0)

    for _ in range(6):
        fractal.gate.release()
    drain_until(rendering, lambda r, done: r.cursor == (2, 1))
    assert not rendering.drain()
    assert rendering.cursor == (2, 1)

    flat = rendering.image.reshape(-1, 3)
    assert list(flat[:6, 0]) == [1, 2, 3, 4, 5, 6]
    assert np.all(flat[6:] == 0)

    for _ in range(width * height - 6):
        fractal.gate.release()
    assert drain_to_completion(rendering)
    image = rendering.image
    for y in range(height):
        for x in range(width):
            assert tuple(image[y, x]) == (y * width + x + 1, 1, 2)


def test_buffer_layout_is_row_major_rgb() -> None:
    width, height = 3, 2
    fractal = IndexFractal(width)
    for _ in range(width * height):
        fractal.gate.release()
    rendering = FractalRendering(width, height, UNIT, fractal, IndexPalette())
    drain_to_completion(rendering)

    data = rendering.image_buffer()
    assert rendering.rowstride == width * 3
    assert len(data) == rendering.rowstride * height
    for y in range(height):
        for x in range(width):
            offset = y * rendering.rowstride + x * 3
            assert tuple(data[offset:offset + 3]) == (y * width + x + 1, 1, 2)


def test_image_view_is_read_only() -> None:
    rendering = FractalRendering(2, 2, UNIT, ConstantFractal(1.0), GrayPalette())
    with pytest.raises(ValueError):
        rendering.image[0, 0] = (1, 2, 3)


def test_dropping_a_rendering_stops_the_worker() -> None:
    fractal = IndexFractal(100)
    rendering = FractalRendering(100, 100, UNIT, fractal, IndexPalette())
    worker = rendering.worker
    for _ in range(10):
        fractal.gate.release()
    drain_until(rendering, lambda r, done: r.cursor == (10, 0))

    del rendering
    gc.collect()
    for _ in range(50):
        fractal.gate.release()

    worker.join(TIMEOUT)
    assert not worker.is_alive()
    # at most the pixel in flight when the rendering was dropped
    assert fractal.calls <= 11


def test_rendering_uses_a_palette_snapshot() -> None:
    transform = CoordinateTransform.for_view(-0.5 + 0j, 1.2, 8, 6)
    fractal = Mandelbrot(max_iterations=50)
    palette = Palette()
    expected = [[compute_pixel(x, y, transform, fractal, Palette()) for x in range(8)] for y in range(6)]

    rendering = FractalRendering(8, 6, transform, fractal, palette)
    for _ in range(5):
        palette.cycle()
    drain_to_completion(rendering)

    assert rendering.image.tolist() == [[list(color) for color in row] for row in expected]


def test_failed_evaluation_renders_as_inside() -> None:
    class Failing:
        def evaluate(self, point):
            raise ZeroDivisionError("boom")

    assert compute_pixel(0, 0, UNIT, Failing(), Palette()) == (0, 0, 0)


@pytest.mark.parametrize("width,height", [(0, 4), (4, 0), (-1, 3)])
def test_empty_renderings_are_rejected(width: int, height: int) -> None:
    with pytest.raises(InvalidParameterError):
        FractalRendering(width, height, UNIT, ConstantFractal(1.0), GrayPalette())


def test_independent_renderings_do_not_interfere() -> None:
    white = FractalRendering(3, 3, UNIT, ConstantFractal(1.0), GrayPalette())
    black = FractalRendering(3, 3, UNIT, ConstantFractal(0.0), GrayPalette())
    drain_to_completion(white)
    drain_to_completion(black)
    assert np.all(white.image == 255)
    assert np.all(black.image == 0)


@pytest.mark.parametrize(
    "seconds,text",
    [(0.000250, "250 µs"), (0.004, "4000 µs"), (0.25, "250 ms"), (1.5, "1.500 s"), (61.25, "61.250 s")],
)
def test_format_duration(seconds: float, text: str) -> None:
    assert format_duration(seconds) == text
