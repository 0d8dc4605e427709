import argparse

from fractalview.settings import (
    default_settings,
    julia_settings,
    load_settings,
    override_settings,
    validate_settings,
)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Progressive Mandelbrot and Julia set viewer.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--load", type=str, metavar="PATH", help="Path to a YAML settings file.", default=None
    )
    parser.add_argument(
        "--julia", type=float, nargs=2, metavar=("RE", "IM"), help="Start with the Julia set of RE + IM i.", default=None
    )
    parser.add_argument(
        "--max-iterations", type=int, dest="max_iterations", metavar="N", help="Iteration budget per point.", default=None
    )
    parser.add_argument(
        "--colormap", type=str, metavar="NAME", help="matplotlib colormap to use instead of the HSL palette.", default=None
    )
    parser.add_argument("--width", type=int, help="Initial window width in pixels.", default=None)
    parser.add_argument("--height", type=int, help="Initial window height in pixels.", default=None)
    parser.add_argument("--log-file", type=str, dest="log_file", metavar="PATH", help="Log file.", default="log.txt")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def parse_args(argv=None):
    return build_parser().parse_args(argv)


def settings_from_args(args):
    """Load the settings file if one was given and apply the command line overrides."""
    settings = load_settings(args.load) if args.load else default_settings
    if args.julia is not None:
        settings = julia_settings(settings, complex(*args.julia))
    resolution = None
    if args.width is not None or args.height is not None:
        resolution = (
            args.width if args.width is not None else settings.resolution[0],
            args.height if args.height is not None else settings.resolution[1],
        )
    settings = override_settings(
        settings,
        max_iterations=args.max_iterations,
        colormap=args.colormap,
        resolution=resolution,
    )
    validate_settings(settings)
    return settings
