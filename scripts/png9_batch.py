#!/usr/bin/env python3
"""Batch-create 9-patch PNGs from a TOML config by running make_png9.py per image."""
from __future__ import annotations

import argparse
import subprocess
import sys
import tomllib
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path


SCRIPT_DIR = Path(__file__).resolve().parent
MAKE_PNG9 = SCRIPT_DIR / "make_png9.py"


def run(cmd: list[str]) -> None:
    print("Running:", " ".join(cmd))
    subprocess.run(cmd, check=True)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", default="png9.toml", help="Path to TOML config")
    parser.add_argument("--only", nargs="*", default=None, help="Only run these image names")
    parser.add_argument("--parallel", type=int, default=1, help="Max concurrent conversions")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without running them")
    return parser.parse_args(argv)


def load_config(path: Path) -> dict:
    if not path.exists():
        raise SystemExit(f"Config not found: {path}")
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise SystemExit(f"Invalid TOML in {path}: {exc}") from exc


def resolve_path(value: str, base_dir: Path) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = base_dir / path
    return path


def build_command(image: dict, global_cfg: dict, base_dir: Path) -> list[str]:
    name = image.get("name") or image.get("input")
    input_value = image.get("input")
    if not input_value:
        raise SystemExit(f"Missing input for {name}. Add input= to the TOML.")

    stretch = image.get("stretch")
    stretch_rect = image.get("stretch_rect")
    if stretch and stretch_rect:
        raise SystemExit(f"Use either stretch or stretch_rect for {name}, not both.")
    if not stretch and not stretch_rect:
        raise SystemExit(f"Missing stretch or stretch_rect for {name}.")

    content = image.get("content")
    content_rect = image.get("content_rect")
    if content and content_rect:
        raise SystemExit(f"Use either content or content_rect for {name}, not both.")

    input_path = resolve_path(str(input_value), base_dir)
    cmd = [sys.executable, str(MAKE_PNG9), "-i", str(input_path)]
    if stretch:
        cmd += ["-s", str(stretch)]
    else:
        cmd += ["-S", str(stretch_rect)]
    if content:
        cmd += ["-c", str(content)]
    elif content_rect:
        cmd += ["-C", str(content_rect)]

    output = image.get("output")
    output_dir = global_cfg.get("output_dir")
    if output:
        cmd += ["-o", str(resolve_path(str(output), base_dir))]
    elif output_dir:
        out_dir = resolve_path(str(output_dir), base_dir)
        cmd += ["-o", str(out_dir / input_path.stem)]

    verbose = image.get("verbose")
    if verbose is None:
        verbose = bool(global_cfg.get("verbose", False))
    if verbose:
        cmd.append("-v")
    return cmd


def output_path_for(cmd: list[str]) -> Path:
    if "-o" in cmd:
        base = Path(cmd[cmd.index("-o") + 1])
    else:
        base = Path(cmd[cmd.index("-i") + 1]).with_suffix("")
    return Path(f"{base.resolve()}.9.png")


def check_unique_outputs(commands: list[list[str]]) -> None:
    seen: dict[Path, str] = {}
    for cmd in commands:
        out_path = output_path_for(cmd)
        source = cmd[cmd.index("-i") + 1]
        if out_path in seen:
            raise SystemExit(
                f"Duplicate output {out_path} for {seen[out_path]} and {source}. Set output= for one of them."
            )
        seen[out_path] = source


def select_images(images: list[dict], only: list[str] | None, active: list[str]) -> list[dict]:
    names = [str(img.get("name", "")) for img in images]
    wanted = only if only else active
    if not wanted:
        return images
    unknown = [n for n in wanted if n not in names]
    if unknown:
        raise SystemExit(f"Unknown image names: {', '.join(unknown)}")
    return [img for img in images if str(img.get("name", "")) in wanted]


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    cfg_path = Path(args.config).resolve()
    config = load_config(cfg_path)
    global_cfg = config.get("global", {})
    images = config.get("image", [])
    if not images:
        raise SystemExit(f"No [[image]] entries in {cfg_path}")
    active_list = [str(name) for name in global_cfg.get("active", [])]

    selected = select_images(images, args.only, active_list)
    commands = [build_command(img, global_cfg, cfg_path.parent) for img in selected]
    check_unique_outputs(commands)

    if args.dry_run:
        for cmd in commands:
            print(" ".join(cmd))
        return 0

    with ThreadPoolExecutor(max_workers=max(1, args.parallel)) as executor:
        futures = [executor.submit(run, cmd) for cmd in commands]
        for future in as_completed(futures):
            try:
                future.result()
            except subprocess.CalledProcessError as exc:
                for pending in futures:
                    pending.cancel()
                print(f"Failed ({exc.returncode}): {' '.join(exc.cmd)}", file=sys.stderr)
                return 1

    print(f"Wrote {len(commands)} 9-patch image(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
