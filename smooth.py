import os
import sys
import warnings

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, file=sys.stderr, **kwargs)


import logging

import numpy as np
import tensorflow as tf

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")
    for handler in tf.get_logger().handlers:
        handler.setLevel("ERROR")

from escapetime import (
    ESCAPE_RADIUS_SQUARED,
    EscapeParameters,
    evaluate_point,
    evaluate_points,
    select_device,
)

from argparse import ArgumentParser


def build_parser():
    parser = ArgumentParser(description='Print the smoothed Mandelbrot escape time of points in the complex plane.')

    parser.add_argument('--escape-radius-squared', type=float,
                        dest='escape_radius_squared', help='threshold on |z|^2 beyond which a point has escaped',
                        metavar='ESCAPE_RADIUS_SQUARED', default=ESCAPE_RADIUS_SQUARED)

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='maximum number of times to iterate z -> z^2 + c',
                        metavar='MAX_ITERATIONS', default=1000)

    parser.add_argument('--point', type=float, nargs=2, action='append',
                        dest='points', help='real and imaginary part of a starting point. May be repeated.',
                        metavar=('REAL', 'IMAG'))

    parser.add_argument('--batch', action='store_true',
                        help='Evaluate all points at once with TensorFlow instead of one at a time.')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow and hardware diagnostics.')

    return parser


def resolve_parameters(opt, parser: ArgumentParser) -> EscapeParameters:
    try:
        return EscapeParameters(
            escape_radius_squared=opt.escape_radius_squared,
            max_iterations=opt.max_iterations,
        )
    except ValueError as exc:
        parser.error(str(exc))


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    global VERBOSE
    VERBOSE = bool(opt.verbose)
    if VERBOSE:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    params = resolve_parameters(opt, parser)
    points = np.array(opt.points or [[0.0, 0.0]], dtype=np.float64)
    if not np.all(np.isfinite(points)):
        parser.error('--point coordinates must be finite.')

    log("TensorFlow version: %s" % tf.__version__)
    log("escape_radius_squared=%s max_iterations=%d" % (params.escape_radius_squared, params.max_iterations))

    if opt.batch:
        device = select_device()
        log("Evaluating %d points on %s" % (len(points), device))
        values = evaluate_points(points[:, 0], points[:, 1], params, device=device).smooth
    else:
        values = [evaluate_point(params, real, imaginary) for real, imaginary in points]

    for value in values:
        print(repr(float(value)))


if __name__ == '__main__':
    main()
