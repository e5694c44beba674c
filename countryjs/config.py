import logging
import os
import yaml  # type: ignore[import]
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ValidationError, validator

from countryjs.io.jsmodule import locale_dir_name

logger = logging.getLogger(__name__)

LAYOUTS = ("nested", "flat")
EXPORT_STYLES = ("factory", "object")


def model_as_dict(obj):
    """Plain dict of a pydantic model under both pydantic v1 and v2."""
    if isinstance(obj, BaseModel):
        if hasattr(obj, "model_dump"):
            return obj.model_dump()
        return obj.dict()
    return obj


class SourceConfig(BaseModel):
    url: str = "https://geolite.maxmind.com/download/geoip/database/GeoLite2-City-CSV.zip"
    csv_prefix: str = "GeoLite2-City-Locations"
    # extracted folder is named e.g. GeoLite2-City-CSV_20190219
    dir_prefix: str = "GeoLite2-City-CSV"


class OutputConfig(BaseModel):
    dir: str = "js"
    layout: str = "nested"
    export_style: str = "factory"
    codes: bool = True
    manifest: bool = True
    debug_csv_dir: Optional[str] = None

    @validator("layout")
    def check_layout(cls, v):
        if v not in LAYOUTS:
            raise ValueError(f"layout must be one of {', '.join(LAYOUTS)}")
        return v

    @validator("export_style")
    def check_export_style(cls, v):
        if v not in EXPORT_STYLES:
            raise ValueError(
                f"export_style must be one of {', '.join(EXPORT_STYLES)}"
            )
        return v


class RuntimeConfig(BaseModel):
    # None waits on the network indefinitely
    request_timeout_sec: Optional[float] = Field(None, gt=0)


class ConfigModel(BaseModel):
    locales: List[str]
    data_dir: str = "data"
    input_dir: Optional[str] = None
    strip_diacritics: bool = True
    source: SourceConfig = Field(default_factory=SourceConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @validator("locales")
    def check_locales(cls, v):
        cleaned = [loc.strip() for loc in v]
        if not cleaned:
            raise ValueError("locales must not be empty")
        if any(not loc for loc in cleaned):
            raise ValueError("locales must not contain empty tags")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("locales must be unique")
        for loc in cleaned:
            if any(sep in loc for sep in ("/", "\\", os.sep)) or loc in (".", ".."):
                raise ValueError(f"locale {loc!r} must not contain path separators")
            if not locale_dir_name(loc):
                raise ValueError(f"locale {loc!r} has no usable directory name")
        # output folders drop hyphens and case, so pt-BR and ptbr collide
        seen: Dict[str, str] = {}
        for loc in cleaned:
            short = locale_dir_name(loc)
            if short in seen:
                raise ValueError(
                    f"locales {seen[short]!r} and {loc!r} both write to {short}/"
                )
            seen[short] = loc
        return cleaned


DEFAULT_CONFIG: Dict[str, Any] = {
    "locales": ["de", "es", "pt-BR", "en", "fr", "ru", "ja", "zh-CN"],
    "data_dir": "data",
    "input_dir": None,
    "strip_diacritics": True,
    "source": {
        "url": "https://geolite.maxmind.com/download/geoip/database/GeoLite2-City-CSV.zip",
        "csv_prefix": "GeoLite2-City-Locations",
        "dir_prefix": "GeoLite2-City-CSV",
    },
    "output": {
        "dir": "js",
        "layout": "nested",
        "export_style": "factory",
        "codes": True,
        "manifest": True,
        "debug_csv_dir": None,
    },
    "runtime": {"request_timeout_sec": None},
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: Optional[str] = None) -> ConfigModel:
    """Load a YAML config file on top of DEFAULT_CONFIG.

    Keys missing from the file keep their default values, nested sections
    included.
    """
    cfg = DEFAULT_CONFIG
    if path:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"config file {path} must contain a mapping")
        cfg = _merge(DEFAULT_CONFIG, loaded)
    try:
        model = ConfigModel(**cfg)
    except ValidationError as e:
        logger.error("Config validation error:")
        logger.error(e.json())
        raise
    return model
