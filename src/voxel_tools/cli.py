"""
Command-Line Interface for Voxel Tools

Usage:
    pxcreatesphere -out sphere.mha -s 64 64 64 -c 32 32 32 -r 20
    pxcreatesphere -out disk.png -s 100 100 -c 50 50 -r 30 -dim 2 -pt unsigned_char
    pxhistogramequalizeimage -in brain.nii.gz -out equalized.nii.gz -mask brain_mask.nii.gz

Exit status is 0 on success and 1 on any failure; failures are reported
on stderr with the stage that failed.
"""

import argparse
import logging
import sys
from typing import List, Optional, Tuple

from .errors import ErrorKind, ToolError
from .pipeline import HISTOGRAM_EQUALIZE, EqualizeParameters, histogram_equalize_image
from .rasterize import CREATE_SPHERE, SphereParameters, create_sphere


# Fewer command line tokens than this prints the help text
MIN_ARGUMENTS = 4


class ToolArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}\n")


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )


def report(error: ToolError):
    """Print a failure diagnostic to stderr."""
    print(f"Error: {error}", file=sys.stderr)


def _parse(parser: argparse.ArgumentParser, argv: List[str]) -> Tuple[Optional[argparse.Namespace], int]:
    """Parse argv; (None, exit status) after help or a usage error was printed."""
    try:
        return parser.parse_args(argv), 0
    except SystemExit as e:
        return None, int(e.code or 0)


def create_sphere_parser() -> argparse.ArgumentParser:
    """Create the argument parser for pxcreatesphere."""
    parser = ToolArgumentParser(
        prog="pxcreatesphere",
        description="Create an image containing a sphere (a disk in 2D).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog=CREATE_SPHERE.describe() + """

Pixel types may use "_" for spaces, e.g. -pt unsigned_char.
The output format follows the extension of -out.
        """
    )

    parser.add_argument("-out", help="output filename")
    parser.add_argument("-s", type=int, nargs="+", help="image size (voxels)")
    parser.add_argument("-sp", type=float, nargs="+", help="image spacing (mm), default 1.0")
    parser.add_argument("-c", type=float, nargs="+", help="center (mm)")
    parser.add_argument("-r", type=float, help="radius (mm)")
    parser.add_argument("-dim", type=int, default=3, help="dimension, default 3")
    parser.add_argument("-pt", default="short", help="pixel type, default short")
    parser.add_argument(
        "-ss",
        type=int,
        default=1,
        help="supersampling per axis for a smooth boundary, default 1 (binary)"
    )
    parser.add_argument("-v", action="store_true", help="verbose logging")

    return parser


def create_sphere_main(argv: Optional[List[str]] = None) -> int:
    """Entry point of pxcreatesphere."""
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = create_sphere_parser()

    if len(argv) < MIN_ARGUMENTS:
        parser.print_help()
        return 1

    args, status = _parse(parser, argv)
    if args is None:
        return status

    configure_logging(args.v)

    for option in ("out", "s", "c", "r"):
        if getattr(args, option) is None:
            report(ToolError(ErrorKind.MISSING_ARGUMENT, f"You should specify \"-{option}\"."))
            return 1

    params = SphereParameters(
        extent=args.s,
        center=args.c,
        radius=args.r,
        spacing=args.sp,
        supersampling=args.ss,
    )

    try:
        result = create_sphere(params, args.out, value_type=args.pt, dimension=args.dim)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.v:
            import traceback
            traceback.print_exc()
        return 1

    if not result.ok:
        report(result.error)
        return 1
    return 0


def histogram_equalize_parser() -> argparse.ArgumentParser:
    """Create the argument parser for pxhistogramequalizeimage."""
    parser = ToolArgumentParser(
        prog="pxhistogramequalizeimage",
        description="Histogram equalization of an image, optionally within a mask.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog=HISTOGRAM_EQUALIZE.describe() + """

The pixel type and dimension are taken from the input image.
Mask voxels that are nonzero take part in the histogram.
        """
    )

    parser.add_argument("-in", dest="input", help="input filename")
    parser.add_argument("-out", help="output filename")
    parser.add_argument("-mask", help="mask filename")
    parser.add_argument(
        "-nbins",
        type=int,
        default=256,
        help="number of histogram bins, default 256"
    )
    parser.add_argument("-v", action="store_true", help="verbose logging")

    return parser


def histogram_equalize_main(argv: Optional[List[str]] = None) -> int:
    """Entry point of pxhistogramequalizeimage."""
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = histogram_equalize_parser()

    if len(argv) < MIN_ARGUMENTS:
        parser.print_help()
        return 1

    args, status = _parse(parser, argv)
    if args is None:
        return status

    configure_logging(args.v)

    for option, value in (("in", args.input), ("out", args.out)):
        if value is None:
            report(ToolError(ErrorKind.MISSING_ARGUMENT, f"You should specify \"-{option}\"."))
            return 1

    params = EqualizeParameters(
        input_path=args.input,
        output_path=args.out,
        mask_path=args.mask,
        nbins=args.nbins,
    )

    try:
        result = histogram_equalize_image(params)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.v:
            import traceback
            traceback.print_exc()
        return 1

    if not result.ok:
        report(result.error)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run a tool by name: ``python -m voxel_tools <tool> [options]``."""
    argv = sys.argv[1:] if argv is None else list(argv)
    tools = {
        "pxcreatesphere": create_sphere_main,
        "pxhistogramequalizeimage": histogram_equalize_main,
    }
    if not argv or argv[0] not in tools:
        print(f"Usage: python -m voxel_tools {{{','.join(tools)}}} [options]", file=sys.stderr)
        return 1
    return tools[argv[0]](argv[1:])


if __name__ == "__main__":
    sys.exit(main())
