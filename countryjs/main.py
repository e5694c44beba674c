import argparse
import logging
import sys

import yaml  # type: ignore[import]
from pydantic import ValidationError

from .config import LAYOUTS, ConfigModel, load_config, model_as_dict
from .errors import CountryJsError
from .pipeline import run


def setup_logging(debug: bool = False):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="countryjs",
        description="Generate JavaScript country name modules from GeoLite2 locations CSVs",
    )
    parser.add_argument("--config", "-c", default=None)
    parser.add_argument(
        "--locales",
        "-L",
        default=None,
        help="Optional comma-separated list of locale tags to override config",
    )
    parser.add_argument("--output", "-o", default=None, help="Output directory")
    parser.add_argument("--data-dir", default=None, help="Download/extract directory")
    parser.add_argument(
        "--input-dir",
        default=None,
        help="Use an already extracted directory of locale CSVs, skip downloading",
    )
    parser.add_argument("--layout", choices=LAYOUTS, default=None)
    parser.add_argument(
        "--no-strip-diacritics",
        action="store_true",
        help="Keep accented names as they appear upstream",
    )
    parser.add_argument("--debug", action="store_true")
    return parser


def apply_overrides(cfg: ConfigModel, args: argparse.Namespace) -> ConfigModel:
    """Return a re-validated copy of cfg with CLI flags applied."""
    data = model_as_dict(cfg)
    if args.locales is not None:
        llist = [loc.strip() for loc in args.locales.split(",") if loc.strip()]
        if not llist:
            raise ValueError(f"--locales {args.locales!r} names no locale")
        data["locales"] = llist
        logging.getLogger(__name__).info(f"Overriding locales from CLI: {llist}")
    if args.output:
        data["output"]["dir"] = args.output
    if args.data_dir:
        data["data_dir"] = args.data_dir
    if args.input_dir:
        data["input_dir"] = args.input_dir
    if args.layout:
        data["output"]["layout"] = args.layout
    if args.no_strip_diacritics:
        data["strip_diacritics"] = False
    return ConfigModel(**data)


def main(cli_args=None) -> int:
    args = build_parser().parse_args(cli_args)
    setup_logging(args.debug)
    logger = logging.getLogger(__name__)
    try:
        cfg = apply_overrides(load_config(args.config), args)
        run(cfg)
    except (CountryJsError, ValidationError, ValueError, yaml.YAMLError, OSError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
