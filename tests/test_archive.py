import io
import os
import zipfile
from unittest.mock import MagicMock, patch

import pytest
import requests

from countryjs.errors import ArchiveError
from countryjs.fetchers.archive import (
    download_file,
    find_extracted_dir,
    prepare_data,
    unzip,
)


def fake_response(content, status=200):
    r = MagicMock()
    r.__enter__.return_value = r
    r.__exit__.return_value = False
    r.iter_content.return_value = [content]
    if status >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return r


def test_prepare_data_downloads_and_extracts(tmp_path, archive_bytes):
    payload = archive_bytes({"GeoLite2-City-Locations-en.csv": "a,b\n"})
    data_dir = tmp_path / "data"
    with patch("countryjs.fetchers.archive.requests.get", return_value=fake_response(payload)) as get:
        out = prepare_data(str(data_dir), "http://example.test/db.zip", "GeoLite2-City-CSV")
    get.assert_called_once_with("http://example.test/db.zip", stream=True, timeout=None)
    assert out == str(data_dir / "GeoLite2-City-CSV_20190219")
    assert (data_dir / "GeoLite2-City-CSV_20190219" / "GeoLite2-City-Locations-en.csv").exists()
    # temporary archive is removed
    assert not (data_dir / "csv.zip").exists()


def test_prepare_data_reuses_existing_dir(tmp_path):
    data_dir = tmp_path / "data"
    (data_dir / "GeoLite2-City-CSV_20240101").mkdir(parents=True)
    with patch("countryjs.fetchers.archive.requests.get") as get:
        out = prepare_data(str(data_dir), "http://example.test/db.zip", "GeoLite2-City-CSV")
    get.assert_not_called()
    assert out == str(data_dir / "GeoLite2-City-CSV_20240101")


def test_find_extracted_dir_none_or_many(tmp_path):
    with pytest.raises(ArchiveError, match="no directory"):
        find_extracted_dir(str(tmp_path), "GeoLite2-City-CSV")
    (tmp_path / "GeoLite2-City-CSV_20190101").mkdir()
    (tmp_path / "GeoLite2-City-CSV_20190219").mkdir()
    with pytest.raises(ArchiveError, match="several"):
        find_extracted_dir(str(tmp_path), "GeoLite2-City-CSV")


def test_find_extracted_dir_ignores_files(tmp_path):
    (tmp_path / "GeoLite2-City-CSV.zip").write_bytes(b"")
    (tmp_path / "GeoLite2-City-CSV_20190219").mkdir()
    assert find_extracted_dir(str(tmp_path), "GeoLite2-City-CSV") == str(
        tmp_path / "GeoLite2-City-CSV_20190219"
    )


def test_download_http_error_is_archive_error(tmp_path):
    with patch(
        "countryjs.fetchers.archive.requests.get",
        return_value=fake_response(b"", status=404),
    ):
        with pytest.raises(ArchiveError, match="failed to download"):
            download_file(str(tmp_path / "x.zip"), "http://example.test/missing.zip")


def test_download_connection_error_is_archive_error(tmp_path):
    with patch(
        "countryjs.fetchers.archive.requests.get",
        side_effect=requests.ConnectionError("refused"),
    ):
        with pytest.raises(ArchiveError):
            download_file(str(tmp_path / "x.zip"), "http://example.test/db.zip")


def test_unzip_corrupt_archive(tmp_path):
    bad = tmp_path / "bad.zip"
    bad.write_bytes(b"not a zip")
    with pytest.raises(ArchiveError, match="not a valid zip"):
        unzip(str(bad), str(tmp_path / "out"))


def test_unzip_rejects_path_traversal(tmp_path):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("../evil.txt", "x")
    src = tmp_path / "evil.zip"
    src.write_bytes(buf.getvalue())
    dest = tmp_path / "out"
    dest.mkdir()
    with pytest.raises(ArchiveError, match="escapes"):
        unzip(str(src), str(dest))
    assert not (tmp_path / "evil.txt").exists()


def test_unzip_returns_first_file_dir(tmp_path, archive_bytes):
    src = tmp_path / "a.zip"
    src.write_bytes(archive_bytes({"one.csv": "1", "two.csv": "2"}, top="Top_1"))
    out = unzip(str(src), str(tmp_path))
    assert out == os.path.normpath(str(tmp_path / "Top_1"))
    assert (tmp_path / "Top_1" / "two.csv").read_text() == "2"


def test_failed_download_leaves_no_data_dir(tmp_path, archive_bytes):
    data_dir = tmp_path / "data"
    with patch(
        "countryjs.fetchers.archive.requests.get",
        side_effect=requests.ConnectionError("reset by peer"),
    ):
        with pytest.raises(ArchiveError):
            prepare_data(str(data_dir), "http://example.test/db.zip", "GeoLite2-City-CSV")
    assert not data_dir.exists()

    payload = archive_bytes({"GeoLite2-City-Locations-en.csv": "a,b\n"})
    with patch("countryjs.fetchers.archive.requests.get", return_value=fake_response(payload)):
        out = prepare_data(str(data_dir), "http://example.test/db.zip", "GeoLite2-City-CSV")
    assert out == str(data_dir / "GeoLite2-City-CSV_20190219")
    assert (data_dir / "GeoLite2-City-CSV_20190219" / "GeoLite2-City-Locations-en.csv").exists()


def test_corrupt_download_leaves_no_data_dir(tmp_path):
    data_dir = tmp_path / "data"
    with patch(
        "countryjs.fetchers.archive.requests.get",
        return_value=fake_response(b"not a zip"),
    ):
        with pytest.raises(ArchiveError, match="not a valid zip"):
            prepare_data(str(data_dir), "http://example.test/db.zip", "GeoLite2-City-CSV")
    assert not data_dir.exists()
