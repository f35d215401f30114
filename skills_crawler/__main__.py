#!/usr/bin/env python3
"""
Command Line Interface
======================
Crawls documentation into skill documents according to ``skills.yaml`` and
the plain-text rule file.

Subcommands:

- ``crawl`` (default) — one traversal over every include rule
- ``clean``           — remove the output directory
- ``scan [PATH]``     — print dependency-derived rules as YAML

Environment variables are read from ``.env`` in the working directory.

Run with: python -m skills_crawler
"""

import argparse
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from . import __version__
from .crawler import SkillsCrawler, TargetResult, TargetState
from .dependency_scanner import scan
from .exceptions import WriteError
from .run_config import DEFAULT_SETTINGS_FILE, SkillsRunConfig, load_run_config

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt='%H:%M:%S',
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='skills-crawler',
        description='Crawl documentation sites into agent skill documents',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m skills_crawler                          # crawl using skills.yaml
  python -m skills_crawler --flat --output skills   # flat layout into ./skills
  python -m skills_crawler --scan-dependencies .    # also crawl this project's dependencies
  python -m skills_crawler scan ./my-app            # print dependency rules
  python -m skills_crawler clean                    # remove the output directory
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument(
        '--settings', type=str, default=DEFAULT_SETTINGS_FILE,
        help=f'Configuration document (default: {DEFAULT_SETTINGS_FILE})',
    )
    parser.add_argument('--config', type=str, help='Plain-text rule file (default: .skillscontext)')
    parser.add_argument('--output', type=str, help='Output directory (default: .skillscache)')
    parser.add_argument('--flat', action='store_true', help='One directory per page instead of a tree')
    parser.add_argument('--rename', type=str, metavar='NAME', help='Fixed file name for skill documents')
    parser.add_argument('--workers', type=int, help='Number of concurrent workers (default: 4)')
    parser.add_argument(
        '--scan-dependencies', type=str, metavar='PATH',
        help='Also crawl documentation for dependencies found in PATH',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    subparsers = parser.add_subparsers(dest='command')
    subparsers.add_parser('crawl', help='Crawl every include rule (default)')
    subparsers.add_parser('clean', help='Remove the output directory')
    scan_parser = subparsers.add_parser('scan', help='Print rules derived from dependency manifests')
    scan_parser.add_argument('path', nargs='?', default='.', help='Project root (default: .)')
    return parser


def resolve_config(args: argparse.Namespace) -> SkillsRunConfig:
    """Document, then environment, then flags."""
    cfg = load_run_config(args.settings)
    cfg.apply_env_overrides()
    cfg.apply_cli_overrides(args)
    return cfg


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def print_summary(stats: dict) -> None:
    """Print crawl summary."""
    print("\n" + "=" * 50)
    print("CRAWL COMPLETE")
    print("=" * 50)
    print(f"  Skill documents written: {stats.get('pages_written', 0)}")
    print(f"  Feeds parsed:            {stats.get('feeds_parsed', 0)}")
    print(f"  Not modified:            {stats.get('pages_not_modified', 0)}")
    print(f"  Ignored:                 {stats.get('pages_rejected', 0)}")
    print(f"  Failed:                  {stats.get('pages_failed', 0)}")
    print(f"  Total time:              {stats.get('elapsed_time', 0):.1f}s")
    print("=" * 50)


def run_crawl(cfg: SkillsRunConfig, scan_path: Optional[str] = None) -> int:
    if scan_path:
        cfg.extra_rules = scan(scan_path)

    cfg.log_summary()

    def progress_cb(result: TargetResult, stats: dict) -> None:
        if result.state is TargetState.ERRORED:
            print(f"  ! {result.url}: {result.message}")

    crawler = SkillsCrawler(cfg)
    crawler.set_progress_callback(progress_cb)
    with crawler:
        try:
            result = crawler.crawl()
        except KeyboardInterrupt:
            crawler.stop()
            logger.warning("[CRAWL] Interrupted by user")
            return 130

    print_summary(result.stats)
    if result.interrupted:
        logger.warning("[CRAWL] Interrupted by user")
        return 130
    return 0


def clean_output(output_dir: str) -> None:
    """
    Recursively delete *output_dir*.

    Raises:
        WriteError: if the directory exists but cannot be removed
    """
    path = Path(output_dir)
    if not path.exists():
        logger.info(f"[WRITE] Nothing to clean at {path}")
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise WriteError(f"could not remove {path}: {e}") from e
    logger.info(f"[WRITE] Removed {path}")


def run_clean(cfg: SkillsRunConfig) -> int:
    try:
        clean_output(cfg.output)
    except WriteError as e:
        logger.error(f"[WRITE] Error cleaning output: {e}")
        return 1
    return 0


def run_scan(path: str) -> int:
    rules = scan(path)
    if not rules:
        logger.info(f"[SCAN] No dependencies found in {path}")
        return 0
    print(yaml.safe_dump({'rules': [rule.to_dict() for rule in rules]}, sort_keys=False), end='')
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Parse argv, build SkillsRunConfig, dispatch."""
    load_dotenv(find_dotenv(usecwd=True))

    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    command = args.command or 'crawl'
    if command == 'scan':
        return run_scan(args.path)

    cfg = resolve_config(args)
    if command == 'clean':
        return run_clean(cfg)
    return run_crawl(cfg, scan_path=args.scan_dependencies)


if __name__ == '__main__':
    sys.exit(main())
