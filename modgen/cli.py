"""CLI entrypoint for modgen."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .build_file import BuildFileError
from .config import ConfigError, load_config
from .gomod.boundary import BoundaryError
from .languages import UnknownLanguageError, discover_languages
from .logging import configure_logging
from .walker import Walker


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modgen",
        description="Generate go_mod rules grouping go_library targets under their go.mod.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a .modgen.yml file (defaults to <path>/.modgen.yml).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the BUILD file changes without writing them.",
    )
    parser.add_argument(
        "--language",
        action="append",
        dest="languages",
        default=None,
        help="Only run the named language; may be repeated.",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Increase log verbosity for troubleshooting.",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for modgen."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)

    repo_path = Path(args.path).expanduser().resolve()
    try:
        config = load_config(args.config if args.config is not None else repo_path)
        # --config may point elsewhere; the walk root is always the given path.
        config.root = repo_path
        languages = discover_languages(config, args.languages)
        result = Walker(config, languages).run(dry_run=args.dry_run)
    except (ConfigError, BoundaryError, BuildFileError, UnknownLanguageError) as exc:
        parser.exit(1, f"modgen failed: {exc}\n")
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")

    if args.dry_run:
        for path in result.changed:
            sys.stdout.write(result.diffs[path])
        return
    for path in result.changed:
        print(f"Updated {_relativize(path)}")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":  # pragma: no cover
    main()
