import sys
import logging

import yaml
from PyQt5.QtWidgets import QApplication, QFileDialog, QLabel, QMainWindow, QSizePolicy
from PyQt5.QtCore import Qt, QEvent, QTimer
from PyQt5.QtGui import QImage, QPixmap

from fractalview.cli import parse_args, settings_from_args
from fractalview.datatypes import InvalidParameterError
from fractalview.fractal import decrease_iterations, increase_iterations
from fractalview.rendering import FractalRendering
from fractalview.settings import build_transform, load_settings, save_settings
from fractalview.view import ViewState

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
ZOOM_IN = 0.5
ZOOM_OUT = 2.0


def setup_logging(log_file="log.txt", verbose=False):
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger()
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


class FractalApp(QMainWindow):
    DEFAULT_SAVE_PATH = "./saves"

    def __init__(self, initial_settings):
        super().__init__()
        self.view = ViewState(initial_settings)
        self.fractal = self.view.fractal()
        self.transform = None
        self.rendering = None
        self.rendering_done = False

        self.init_ui()

        self.timer = QTimer(self)
        self.timer.timeout.connect(self.poll_rendering)
        self.timer.start(self.view.settings.poll_interval_ms)

    def init_ui(self):
        self.resize(*self.view.settings.resolution)

        self.display = QLabel()
        self.display.setAlignment(Qt.AlignLeft | Qt.AlignTop)
        self.display.setSizePolicy(QSizePolicy.Ignored, QSizePolicy.Ignored)
        self.display.setMinimumSize(1, 1)
        self.setCentralWidget(self.display)

        self.display.installEventFilter(self)
        self.display.setFocusPolicy(Qt.StrongFocus)
        self.display.setFocus()
        self.display.keyPressEvent = self.on_key
        self.setWindowTitle(self.get_title())

    def get_title(self):
        return f"{self.fractal} @ {self.view.settings.center} ±{self.view.settings.scale:e}"

    def render_fractal(self):
        """Replace the current rendering with a new one for the current view. The old one is dropped."""
        width, height = self.display.width(), self.display.height()
        self.fractal = self.view.fractal()
        self.transform = build_transform(self.view.settings, width, height)
        logging.info(f"Rendering {self.fractal} at {width}x{height}...")
        self.rendering = FractalRendering(width, height, self.transform, self.fractal, self.view.palette)
        self.rendering_done = False
        self.setWindowTitle(self.get_title())

    def redraw(self):
        self.rendering = None

    def poll_rendering(self):
        """Pull whatever pixels the worker has produced and show them."""
        size = (self.display.width(), self.display.height())
        if min(size) <= 0:
            return
        if self.rendering is None or (self.rendering.width, self.rendering.height) != size:
            self.render_fractal()
        if self.rendering_done:
            return
        self.rendering_done = self.rendering.drain()
        self.display_fractal()

    def display_fractal(self):
        rendering = self.rendering
        data = rendering.image_buffer()
        q_image = QImage(data, rendering.width, rendering.height, rendering.rowstride, QImage.Format_RGB888)
        self.display.setPixmap(QPixmap.fromImage(q_image))

    def on_key(self, event):
        """Handle key press events."""
        logging.debug(f"Key pressed: {event.key()}")
        key = event.key()
        if event.modifiers() & Qt.ControlModifier:
            if key == Qt.Key_S:
                self.save_settings()
            elif key == Qt.Key_O:
                self.load_settings()
            return
        if key == Qt.Key_Escape:
            self.close()
            return
        if key in (Qt.Key_Plus, Qt.Key_Equal):
            self.view.change_iterations(increase_iterations)
        elif key == Qt.Key_Minus:
            self.view.change_iterations(decrease_iterations)
        elif key == Qt.Key_C:
            self.view.cycle_palette()
        elif key == Qt.Key_M:
            self.view.mandelbrot()
        elif key == Qt.Key_Home:
            self.view.reset()
        elif key == Qt.Key_Backspace:
            if not self.view.go_back():
                return
        else:
            return
        self.redraw()

    def eventFilter(self, source, event):
        """Zoom in, zoom out or switch to a Julia set on mouse release."""
        if source is self.display and event.type() == QEvent.MouseButtonRelease and self.transform is not None:
            pos = event.localPos()
            point = self.transform.map(pos.x(), pos.y())
            logging.debug(f"Got button {event.button()} release at {point}")
            if event.button() == Qt.LeftButton:
                self.view.zoom(point, ZOOM_IN)
            elif event.button() == Qt.MiddleButton:
                self.view.julia(point)
            elif event.button() == Qt.RightButton:
                self.view.zoom(point, ZOOM_OUT)
            else:
                return True
            self.redraw()
            return True
        return super().eventFilter(source, event)

    def save_settings(self):
        """Save the current view settings to a YAML file."""
        file_path, _ = QFileDialog.getSaveFileName(
            self,
            "Save Fractal Settings",
            self.DEFAULT_SAVE_PATH,
            "YAML Files (*.yaml);;All Files (*)",
        )
        if file_path:
            try:
                save_settings(self.view.settings, file_path)
            except OSError as e:
                logging.warning(f"Could not save settings to {file_path}: {e}")
                return
            logging.info(f"Settings saved to {file_path}")

    def load_settings(self):
        """Load view settings from a YAML file."""
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Load Fractal Settings",
            self.DEFAULT_SAVE_PATH,
            "YAML Files (*.yaml);;All Files (*)",
        )
        if not file_path:
            return
        try:
            settings = load_settings(file_path)
        except (OSError, yaml.YAMLError, InvalidParameterError) as e:
            logging.warning(f"Could not load settings from {file_path}: {e}")
            return
        logging.info(f"Settings loaded from {file_path}")
        self.view.load(settings)
        self.redraw()


def run(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)
    try:
        settings = settings_from_args(args)
    except (OSError, yaml.YAMLError, InvalidParameterError) as e:
        logging.error(f"Invalid settings: {e}")
        return 2
    app = QApplication(sys.argv[:1])
    main_window = FractalApp(settings)
    main_window.show()
    return app.exec()
