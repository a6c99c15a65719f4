from __future__ import annotations

"""Command-line interface for sourcemap-unpack.

`single` downloads scripts and restores the sources their sourcemaps expose.
`local` re-runs restoration over targets already downloaded to disk.
"""

import argparse
import logging
import sys
from pathlib import Path

from .errors import SourceMapUnpackError
from .format import format_source, identity
from .modes import RunConfig, run_local, run_single

__version__ = "0.3.0"


def build_parser() -> argparse.ArgumentParser:
    return argparse.ArgumentParser(
        prog="sourcemap-unpack",
        description="Restore original source trees from JavaScript bundles and their sourcemaps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    sourcemap-unpack single https://example.com/static/js/main.js
    sourcemap-unpack -o out single https://example.com/a.js https://example.com/b.js
    sourcemap-unpack local ./example.com-unpacked  # Re-process one target
    sourcemap-unpack -o out local                  # Re-process every target in out/
        """,
    )


def _print_errors(errors: list[Exception], verbose: bool) -> None:
    if not errors:
        return
    print(f"Errors:             {len(errors)}")
    if verbose:
        for e in errors:
            print(f"      - {e}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    parser.add_argument("-o", "--output", dest="output_dir", default=".", help="Output root directory (default: .)")
    parser.add_argument("-v", "--verbose", action="store_true", help="List each file and every error")
    parser.add_argument("-f", "--force", action="store_true", help="Reuse an existing target directory")
    parser.add_argument("--no-format", action="store_true", help="Write sources without pretty-printing")
    parser.add_argument(
        "--no-fetch-assets",
        action="store_true",
        help="Don't download real assets for bundler loader stubs (stubs are skipped)",
    )
    parser.add_argument("-j", "--jobs", type=int, default=1, help="Worker threads for asset scanning")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)
    single = sub.add_parser("single", help="Extract sourcemaps from one or more script URLs")
    single.add_argument("urls", nargs="+", metavar="script-url")
    local = sub.add_parser("local", help="Process already-downloaded .js and .map files")
    local.add_argument("target", nargs="?", help="Target directory (default: every directory in the output root)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    config = RunConfig(
        output_root=Path(args.output_dir),
        force=args.force,
        fetch_assets=not args.no_fetch_assets,
        formatter=identity if args.no_format else format_source,
        workers=max(1, args.jobs),
    )

    try:
        if args.command == "single":
            result = run_single(config, args.urls)
            print(f"Sourcemaps found:   {result.maps_found}")
            print(f"Sources restored:   {result.sources_restored}")
            print(f"Sources skipped:    {result.sources_skipped}")
            print(f"Assets fetched:     {result.assets_fetched}")
            print(f"Assets extracted:   {result.assets_extracted}")
            _print_errors(result.errors, args.verbose)
        else:
            target = Path(args.target) if args.target else None
            lresult = run_local(config, target)
            print(f"Targets processed:  {lresult.targets_processed}")
            print(f"Maps processed:     {lresult.maps_processed}")
            print(f"Sources restored:   {lresult.sources_restored}")
            print(f"Sources skipped:    {lresult.sources_skipped}")
            print(f"Assets extracted:   {lresult.assets_extracted}")
            _print_errors(lresult.errors, args.verbose)
    except SourceMapUnpackError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
