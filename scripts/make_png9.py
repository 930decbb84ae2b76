#!/usr/bin/env python3
"""Create a 9-patch PNG image (<name>.9.png) from an input image."""
from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, TextIO, Union

from PIL import Image, ImageDraw, UnidentifiedImageError


MARKER_COLOR = (0, 0, 0, 255)

USAGE = """\
{prog}: Creates a 9-patch PNG image from an input image.

Usage: {prog} -i input.png -s <t-r-b-l> [options]
Options:
  -c <insets>       Specify the content-area insets. Defaults to the same area
                    as the stretchable-area if not supplied.
  -C <rectangle>    Specify the content-area rectangle. Defaults to the same
                    area as the stretchable-area if not supplied.
  -h                Show this help.
  -i <input_image>  Specify the input image (required).
  -o <output_image> The base-name of the output file, .9.png will be appended
                    automatically. Defaults to the base-name of the input file.
  -s <insets>       Specify the stretchable-area insets (-s or -S required).
  -S <rectangle>    Specify the stretchable-area rectangle (-s or -S required).
  -v                Be verbose.

Insets or rectangle:
  The stretchable-area and content-area can be defined in two ways: As insets
  from the edge of the image; or as an absolute rectangle. Using insets is
  probably more useful in most cases because they represent the unstretchable
  or non-content areas at the edge of the image, regardless of the image size.

  Insets and rectangles are specified as four integer numbers separated by a
  dash (-). For insets the order is: top-right-bottom-left, for rectangles the
  order is x-y-width-height. For example insets of 2-4-6-8 on a 32x32 pixel
  image are equivalent to a rectangle of 8-2-20-24.

Usage examples:
{prog} -i button.png -s 8-8-8-8
{prog} -h
"""

ANSI = {
    "bold": "\033[1m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "reset": "\033[0m",
}


class UsageError(Exception):
    """Bad, missing or conflicting command line options."""


class ExternalToolError(Exception):
    """Pillow failed to read the input image or write the output image."""


@dataclass(frozen=True)
class Insets:
    top: int
    right: int
    bottom: int
    left: int


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int


AreaSpec = Union[Insets, Rect]


@dataclass(frozen=True)
class Png9Options:
    input_path: Path
    base_name: str
    stretch: AreaSpec
    content: AreaSpec
    content_defaulted: bool = False
    verbose: bool = False

    @property
    def output_path(self) -> Path:
        return Path(f"{self.base_name}.9.png")


@dataclass(frozen=True)
class BorderMarkers:
    """Marker segments in output canvas coordinates, as ((x0, y0), (x1, y1))."""

    size: tuple[int, int]
    left: tuple[tuple[int, int], tuple[int, int]]
    top: tuple[tuple[int, int], tuple[int, int]]
    right: tuple[tuple[int, int], tuple[int, int]]
    bottom: tuple[tuple[int, int], tuple[int, int]]


def use_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def paint(text: str, *styles: str, stream: TextIO | None = None) -> str:
    if not use_color(stream or sys.stdout):
        return text
    prefix = "".join(ANSI[s] for s in styles)
    return f"{prefix}{text}{ANSI['reset']}"


def usage_text(prog: str | None = None) -> str:
    return USAGE.format(prog=prog or Path(sys.argv[0]).name)


class Png9ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports problems as UsageError instead of exiting 2."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(message)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = Png9ArgumentParser(prog=Path(sys.argv[0]).name, add_help=False)
    parser.add_argument("-i", dest="input", default=None, help="Input image (required)")
    parser.add_argument("-o", dest="output", default=None, help="Output base name")
    parser.add_argument("-s", dest="stretch_insets", default=None, help="Stretchable-area insets t-r-b-l")
    parser.add_argument("-S", dest="stretch_rect", default=None, help="Stretchable-area rectangle x-y-w-h")
    parser.add_argument("-c", dest="content_insets", default=None, help="Content-area insets t-r-b-l")
    parser.add_argument("-C", dest="content_rect", default=None, help="Content-area rectangle x-y-w-h")
    parser.add_argument("-v", dest="verbose", action="store_true", help="Be verbose")
    parser.add_argument("-h", dest="help", action="store_true", help="Show this help")
    tokens = sys.argv[1:] if argv is None else argv
    try:
        args, extras = parser.parse_known_args(tokens)
    except UsageError:
        # -h wins over any other problem on the command line.
        if "-h" in tokens:
            return argparse.Namespace(help=True, verbose=False)
        raise
    if args.help:
        return args
    if extras:
        raise UsageError(f"Unrecognised option: {extras[0]}")
    return args


def parse_area_values(value: str, flag: str) -> tuple[int, int, int, int]:
    parts = value.split("-")
    if len(parts) != 4 or not all(p.isascii() and p.isdigit() for p in parts):
        raise UsageError(
            f"Expected four non-negative integers separated by '-' for {flag}, got: {value}"
        )
    a, b, c, d = (int(p) for p in parts)
    return (a, b, c, d)


def parse_area(insets: str | None, rect: str | None, name: str, insets_flag: str, rect_flag: str) -> AreaSpec | None:
    if insets is not None and rect is not None:
        raise UsageError(
            f"You cannot set the {name} using both insets and rectangle, use one or the other."
        )
    if insets is not None:
        return Insets(*parse_area_values(insets, insets_flag))
    if rect is not None:
        return Rect(*parse_area_values(rect, rect_flag))
    return None


def build_options(args: argparse.Namespace) -> Png9Options:
    """Validate parsed flags and turn them into a Png9Options value.

    Usage problems are checked before the input file, so a missing file is only
    reported once the command line itself is sound.
    """
    if not args.input:
        raise UsageError("You must specify an input image file.")
    if args.stretch_insets is None and args.stretch_rect is None:
        raise UsageError("You must specify the stretchable-area using either insets or rectangle")
    stretch = parse_area(args.stretch_insets, args.stretch_rect, "stretchable-area", "-s", "-S")
    content = parse_area(args.content_insets, args.content_rect, "content-area", "-c", "-C")

    input_path = Path(args.input)
    if not input_path.is_file():
        raise FileNotFoundError(f"Cannot find the input image: {input_path}")

    content_defaulted = content is None
    if content is None:
        content = stretch

    if args.output:
        base_name = args.output
    else:
        base_name = str(input_path.with_suffix(""))

    return Png9Options(
        input_path=input_path,
        base_name=base_name,
        stretch=stretch,
        content=content,
        content_defaulted=content_defaulted,
        verbose=bool(args.verbose),
    )


def read_dimensions(path: Path) -> tuple[int, int]:
    try:
        with Image.open(path) as img:
            return img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ExternalToolError(f"Couldn't get image size from input image: {path} ({exc})") from exc


def derive_rectangle(area: AreaSpec, size: tuple[int, int]) -> Rect:
    if isinstance(area, Rect):
        return Rect(area.x, area.y, area.width, area.height)
    width, height = size
    return Rect(
        x=area.left,
        y=area.top,
        width=width - area.right - area.left,
        height=height - area.top - area.bottom,
    )


def check_bounds(rect: Rect, size: tuple[int, int], name: str) -> None:
    width, height = size
    if rect.width < 1 or rect.height < 1:
        raise UsageError(
            f"The {name} is empty: ({rect.x}, {rect.y}, {rect.width}, {rect.height}) "
            f"in a {width}x{height} image."
        )
    if rect.x + rect.width > width or rect.y + rect.height > height:
        raise UsageError(
            f"The {name} ({rect.x}, {rect.y}, {rect.width}, {rect.height}) "
            f"does not fit inside the {width}x{height} input image."
        )


def border_markers(size: tuple[int, int], stretch: Rect, content: Rect) -> BorderMarkers:
    width, height = size
    out_w = width + 2
    out_h = height + 2
    out_r = out_w - 1
    out_b = out_h - 1
    # +1 shifts source coordinates past the transparent border.
    str_l = stretch.x + 1
    str_t = stretch.y + 1
    str_r = str_l + stretch.width - 1
    str_b = str_t + stretch.height - 1
    con_l = content.x + 1
    con_t = content.y + 1
    con_r = con_l + content.width - 1
    con_b = con_t + content.height - 1
    return BorderMarkers(
        size=(out_w, out_h),
        left=((0, str_t), (0, str_b)),
        top=((str_l, 0), (str_r, 0)),
        right=((out_r, con_t), (out_r, con_b)),
        bottom=((con_l, out_b), (con_r, out_b)),
    )


def compose_png9(src: Image.Image, markers: BorderMarkers) -> Image.Image:
    canvas = Image.new("RGBA", markers.size, (0, 0, 0, 0))
    canvas.alpha_composite(src.convert("RGBA"), dest=(1, 1))
    draw = ImageDraw.Draw(canvas)
    for segment in (markers.left, markers.top, markers.right, markers.bottom):
        draw.line(list(segment), fill=MARKER_COLOR, width=1)
    return canvas


def write_png9(input_path: Path, output_path: Path, markers: BorderMarkers) -> None:
    try:
        with Image.open(input_path) as src:
            out = compose_png9(src, markers)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ExternalToolError(f"Couldn't read input image: {input_path} ({exc})") from exc

    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp = output_path.with_name(f".{output_path.name}.tmp.png")
    try:
        out.save(tmp, format="PNG")
        tmp.replace(output_path)
    except (OSError, ValueError) as exc:
        if tmp.exists():
            tmp.unlink()
        raise ExternalToolError(f"Couldn't write output image: {output_path} ({exc})") from exc


def describe(rect: Rect) -> str:
    values = ", ".join(paint(str(v), "yellow") for v in (rect.x, rect.y, rect.width, rect.height))
    return f"({values})"


def make_png9(options: Png9Options) -> Path:
    verbose = options.verbose
    output_path = options.output_path
    if verbose:
        if options.content_defaulted:
            print(
                paint("Setting ", "cyan")
                + paint("content-area", "magenta")
                + paint(" equal to ", "cyan")
                + paint("stretchable-area", "magenta")
                + paint(".", "cyan")
            )
        print(paint("Output file will be called: ", "cyan") + paint(str(output_path), "blue"))

    size = read_dimensions(options.input_path)
    stretch = derive_rectangle(options.stretch, size)
    content = derive_rectangle(options.content, size)
    check_bounds(stretch, size, "stretchable-area")
    check_bounds(content, size, "content-area")
    markers = border_markers(size, stretch, content)

    if verbose:
        in_w, in_h = size
        out_w, out_h = markers.size
        print(
            paint("Input image is ", "cyan")
            + paint(f"{in_w}x{in_h}", "yellow")
            + paint(", output image will be ", "cyan")
            + paint(f"{out_w}x{out_h}", "yellow")
            + paint(".", "cyan")
        )
        for label, rect in (("stretchable-area", stretch), ("    content-area", content)):
            print(
                paint("Rectangle for ", "cyan")
                + paint(label, "magenta")
                + paint(": ", "cyan")
                + describe(rect)
                + " in input image."
            )

    print("Generating 9-patch PNG image...")
    write_png9(options.input_path, output_path, markers)
    print(paint(str(output_path), "blue") + " " + paint("Done.", "bold", "green"))
    return output_path


def print_error(message: str, show_usage: bool) -> None:
    print("", file=sys.stderr)
    print(paint(f"ERROR: {message}", "bold", "red", stream=sys.stderr), file=sys.stderr)
    if show_usage:
        print(usage_text(), file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(argv)
        if args.help:
            print(usage_text(), file=sys.stderr)
            return 0
        if args.verbose:
            print(paint("Verbose mode ", "cyan") + paint("on", "green") + paint(".", "cyan"))
        options = build_options(args)
        make_png9(options)
    except UsageError as exc:
        print_error(str(exc), show_usage=True)
        return 1
    except (FileNotFoundError, ExternalToolError) as exc:
        print_error(str(exc), show_usage=False)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
