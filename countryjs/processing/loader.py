"""Parse one GeoLite2 locations CSV into a sorted, de-duplicated country list.

Upstream schema: column 4 holds the ISO country code, column 5 the localized
country name, row 0 is the header. Cities repeat their country on every row,
so the same code appears many times; the last row for a code wins.
"""
import csv
import logging
import os
import unicodedata
from typing import Dict, Iterable, List, Optional

from countryjs.errors import DataError, OutputError
from countryjs.processing.registry import Country, by_code

logger = logging.getLogger(__name__)

CODE_COLUMN = 4
NAME_COLUMN = 5


def strip_diacritics(text: str) -> str:
    """Drop combining marks: 'Côte d'Ivoire' -> 'Cote d'Ivoire'."""
    decomposed = unicodedata.normalize("NFD", text)
    kept = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", kept)


def load_locale_csv(
    csv_path: str,
    out_path: Optional[str] = None,
    strip_accents: bool = True,
    code_column: int = CODE_COLUMN,
    name_column: int = NAME_COLUMN,
) -> List[Country]:
    width = max(code_column, name_column) + 1
    countries: Dict[str, Country] = {}
    try:
        with open(csv_path, "r", encoding="utf-8", newline="") as fh:
            reader = csv.reader(fh, strict=True)
            header_seen = False
            for row in reader:
                # blank lines carry no record
                if not row:
                    continue
                if len(row) < width:
                    raise DataError(
                        f"{csv_path}:{reader.line_num}: expected at least "
                        f"{width} columns, got {len(row)}"
                    )
                if not header_seen:
                    header_seen = True
                    continue
                code, name = row[code_column], row[name_column]
                if not code or not name:
                    continue
                if strip_accents:
                    name = strip_diacritics(name)
                countries[code] = Country(code=code, name=name)
    except FileNotFoundError as e:
        raise DataError(f"locale file not found: {csv_path}") from e
    except csv.Error as e:
        raise DataError(f"malformed CSV {csv_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise DataError(f"{csv_path} is not valid UTF-8: {e}") from e
    except OSError as e:
        raise DataError(f"cannot read {csv_path}: {e}") from e

    result = by_code(countries.values())
    logger.debug(f"{csv_path}: {len(result)} countries")

    if out_path:
        write_country_csv(result, out_path)
    return result


def write_country_csv(countries: Iterable[Country], out_path: str) -> str:
    """Write a code,name CSV sorted by code; readable with code_column=0, name_column=1."""
    out_dir = os.path.dirname(out_path)
    try:
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        with open(out_path, "w", encoding="utf-8", newline="") as fh:
            w = csv.writer(fh)
            w.writerow(["code", "name"])
            for c in by_code(countries):
                w.writerow([c.code, c.name])
    except OSError as e:
        raise OutputError(f"cannot write {out_path}: {e}") from e
    return out_path
