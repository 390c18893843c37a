#!/usr/bin/env python3
"""
dssim command line interface.

Compares a base image with one or more candidates and prints one line per
candidate, in input order:

    <dissimilarity><TAB><candidate path>

Exit status is 0 when every candidate was scored and 1 when any input could
not be decoded or compared. Remaining candidates are still processed.
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List

from . import VERSION
from .config import DssimConfig, COLOR_SPACES
from .engine import Dssim
from .errors import DssimError
from .io import load_image, save_difference_map

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def map_output_path(output: str, index: int, total: int) -> Path:
    """Difference map path for the index-th candidate; numbered when there are several"""
    path = Path(output)
    if total == 1:
        return path
    return path.with_name(f"{path.stem}-{index + 1}{path.suffix or '.png'}")


class DssimCLI:
    """Command-line interface for dssim"""

    def __init__(self, stdout=None):
        self.parser = self._create_parser()
        self.stdout = stdout or sys.stdout

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog='dssim',
            description='Multi-scale SSIM image dissimilarity (0 = identical)',
            formatter_class=argparse.RawDescriptionHelpFormatter
        )
        parser.add_argument('--version', action='version', version=f'dssim v{VERSION}')
        parser.add_argument('base', help='Base (reference) image')
        parser.add_argument('candidates', nargs='+', help='Images to compare against the base')
        parser.add_argument('-o', '--output', help='Write the difference map image to this path')
        parser.add_argument('--no-map', action='store_true', help='Do not write a difference map')
        parser.add_argument('--config', help='Path to JSON configuration file')
        parser.add_argument('--workers', type=int, help='Worker threads (default: one per CPU)')
        parser.add_argument('--color-space', choices=COLOR_SPACES, help='Channel space to compare in')
        parser.add_argument('--verbose', action='store_true', help='Enable verbose logging')
        return parser

    def _load_config(self, args) -> DssimConfig:
        config = DssimConfig.from_json(args.config) if args.config else DssimConfig()
        changes = {'emit_map': bool(args.output) and not args.no_map}
        if args.workers is not None:
            changes['workers'] = args.workers
        if args.color_space:
            changes['color_space'] = args.color_space
        return config.replace(**changes)

    def run(self, args=None) -> int:
        args = self.parser.parse_args(args)

        if args.verbose:
            logging.getLogger().setLevel(logging.DEBUG)

        try:
            config = self._load_config(args)
            engine = Dssim(config)
        except DssimError as e:
            logger.error(e.describe())
            return 1

        try:
            base = load_image(args.base)
        except DssimError as e:
            logger.error(e.describe())
            return 1

        return self._compare(engine, base, args)

    def _compare(self, engine: Dssim, base, args) -> int:
        failed = False
        decoded: List = []
        decoded_paths: List[str] = []
        decoded_index: List[int] = []
        for index, path in enumerate(args.candidates):
            try:
                decoded.append(load_image(path))
                decoded_paths.append(path)
                decoded_index.append(index)
            except DssimError as e:
                logger.error(e.describe())
                failed = True

        start_time = time.time()
        try:
            entries = engine.compare_batch(base, decoded, labels=decoded_paths) if decoded else []
        except DssimError as e:
            if e.source is None:
                e.source = args.base
            logger.error(e.describe())
            return 1
        logger.debug(f"Compared {len(entries)} candidates in {time.time() - start_time:.2f}s")

        for entry, index in zip(entries, decoded_index):
            path = args.candidates[index]
            if not entry.ok:
                logger.error(entry.error.describe())
                failed = True
                continue
            result = entry.result
            print(f"{result.dissimilarity:.8f}\t{path}", file=self.stdout)
            if result.difference_map is not None:
                out_path = map_output_path(args.output, index, len(args.candidates))
                try:
                    save_difference_map(result.difference_map, out_path)
                except (OSError, ValueError) as e:
                    logger.error(f"{out_path}: failed to write difference map: {e}")
                    failed = True
        return 1 if failed else 0


def main():
    cli = DssimCLI()
    sys.exit(cli.run())
