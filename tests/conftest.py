import io
import warnings
import zipfile

import pytest

# Suppress noisy pydantic deprecation warnings (v1-style validators) during tests
warnings.filterwarnings("ignore", category=DeprecationWarning, module="pydantic.*")

HEADER = [
    "geoname_id",
    "locale_code",
    "continent_code",
    "continent_name",
    "country_iso_code",
    "country_name",
]


def locale_rows(locale, countries):
    """Build upstream-shaped rows for (code, name) pairs."""
    rows = [",".join(HEADER)]
    for i, (code, name) in enumerate(countries, start=1):
        rows.append(f'{i},{locale},EU,Europe,{code},"{name}"')
    return "\n".join(rows) + "\n"


@pytest.fixture
def write_locale_csv(tmp_path):
    def _write(locale, countries, directory=None, prefix="GeoLite2-City-Locations"):
        d = directory or tmp_path
        d.mkdir(parents=True, exist_ok=True)
        path = d / f"{prefix}-{locale}.csv"
        path.write_text(locale_rows(locale, countries), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def archive_bytes():
    """ZIP laid out like the upstream download: one dated top-level folder."""

    def _build(files, top="GeoLite2-City-CSV_20190219"):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr(f"{top}/", "")
            for name, text in files.items():
                zf.writestr(f"{top}/{name}", text)
        return buf.getvalue()

    return _build
