"""Drive the download -> parse -> emit pipeline across all configured locales.

Locales are processed one after another; the first error from any stage
propagates out of run() unchanged.
"""
import logging
import os
from typing import Dict, List, Set

from pydantic import BaseModel, Field

from countryjs.config import ConfigModel, model_as_dict
from countryjs.errors import DataError, OutputError
from countryjs.fetchers.archive import prepare_data
from countryjs.io.artifacts import MANIFEST_NAME, write_manifest
from countryjs.io.jsmodule import code_list, emit_locale, locale_dir_name, write_module
from countryjs.processing.loader import load_locale_csv
from countryjs.processing.registry import Country, CountryRegistry

logger = logging.getLogger(__name__)


class RunResult(BaseModel):
    data_dir: str
    outputs: Dict[str, str] = Field(default_factory=dict)
    counts: Dict[str, int] = Field(default_factory=dict)
    codes: List[str] = Field(default_factory=list)
    manifest_path: str = ""


def locale_csv_path(data_dir: str, csv_prefix: str, locale: str) -> str:
    return os.path.join(data_dir, f"{csv_prefix}-{locale}.csv")


def resolve_data_dir(cfg: ConfigModel) -> str:
    if cfg.input_dir:
        if not os.path.isdir(cfg.input_dir):
            raise DataError(f"input directory {cfg.input_dir} does not exist")
        return cfg.input_dir
    return prepare_data(
        cfg.data_dir,
        cfg.source.url,
        cfg.source.dir_prefix,
        timeout=cfg.runtime.request_timeout_sec,
    )


def _report_coverage(coverage: Dict[str, Set[str]], union: Set[str]) -> None:
    for locale, codes in coverage.items():
        missing = sorted(union - codes)
        if missing:
            logger.warning(
                f"{locale}: {len(missing)} codes missing from this locale: "
                f"{', '.join(missing)}"
            )


def run(cfg: ConfigModel) -> RunResult:
    data_dir = resolve_data_dir(cfg)
    out_dir = cfg.output.dir
    try:
        os.makedirs(out_dir, exist_ok=True)
    except OSError as e:
        raise OutputError(f"cannot create {out_dir}: {e}") from e

    result = RunResult(data_dir=data_dir)
    coverage: Dict[str, Set[str]] = {}
    names_by_code: Dict[str, str] = {}

    logger.info(f"Parsing {data_dir}")
    for loc in cfg.locales:
        input_path = locale_csv_path(data_dir, cfg.source.csv_prefix, loc)
        debug_csv = None
        if cfg.output.debug_csv_dir:
            debug_csv = os.path.join(
                cfg.output.debug_csv_dir, f"{locale_dir_name(loc)}.csv"
            )
        countries = load_locale_csv(
            input_path, out_path=debug_csv, strip_accents=cfg.strip_diacritics
        )
        registry = CountryRegistry.from_countries(loc, countries)

        outputs = emit_locale(
            registry.by_code(),
            out_dir,
            loc,
            layout=cfg.output.layout,
            export_style=cfg.output.export_style,
        )
        result.outputs.update(outputs)
        result.counts[loc] = len(registry)
        coverage[loc] = set(registry.codes())
        for code, name in registry.mapping().items():
            names_by_code.setdefault(code, name)

    # codes.js covers every code seen in any locale, not only the last one
    union: Set[str] = set().union(*coverage.values())
    result.codes = sorted(union)
    _report_coverage(coverage, union)

    if cfg.output.codes:
        countries_union = [Country(code=c, name=names_by_code[c]) for c in result.codes]
        path = os.path.join(out_dir, "codes.js")
        result.outputs["codes"] = write_module(
            code_list(countries_union), path, cfg.output.export_style
        )

    if cfg.output.manifest:
        manifest = {
            "data_dir": data_dir,
            "locales": list(cfg.locales),
            "counts": result.counts,
            "n_codes": len(result.codes),
            "config_snapshot": model_as_dict(cfg),
        }
        result.manifest_path = write_manifest(
            manifest, os.path.join(out_dir, MANIFEST_NAME), outputs=result.outputs
        )
        logger.info(f"Wrote manifest to {result.manifest_path}")

    logger.info("Done")
    return result
