"""Fetch and unpack the GeoLite2 locations archive.

The archive is downloaded once into the data directory; later runs reuse the
extracted folder found there. Nothing is retried: any network, zip or
filesystem failure raises ArchiveError and ends the run.
"""
import logging
import os
import shutil
import zipfile
from typing import Optional

import requests  # type: ignore

from countryjs.errors import ArchiveError

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "csv.zip"
CHUNK_SIZE = 64 * 1024


def download_file(path: str, url: str, timeout: Optional[float] = None) -> str:
    """Download url and save the body to path."""
    try:
        with requests.get(url, stream=True, timeout=timeout) as r:
            r.raise_for_status()
            with open(path, "wb") as out:
                for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        out.write(chunk)
    except (requests.RequestException, OSError) as e:
        raise ArchiveError(f"failed to download {url}: {e}") from e
    return path


def _safe_target(dest: str, member: str) -> str:
    root = os.path.realpath(dest)
    target = os.path.realpath(os.path.join(dest, member))
    if target != root and not target.startswith(root + os.sep):
        raise ArchiveError(f"archive entry {member!r} escapes {dest}")
    return target


def unzip(src: str, dest: str) -> str:
    """Extract every entry of src under dest and return the extracted dir.

    The returned directory is the one holding the first regular file of the
    archive, which for the upstream layout is its single top-level folder.
    """
    extracted_dir = ""
    try:
        with zipfile.ZipFile(src) as zf:
            for info in zf.infolist():
                target = _safe_target(dest, info.filename)
                if info.is_dir():
                    os.makedirs(target, exist_ok=True)
                    continue
                fdir = os.path.dirname(target)
                os.makedirs(fdir, exist_ok=True)
                if not extracted_dir:
                    extracted_dir = os.path.join(
                        dest, os.path.dirname(info.filename)
                    )
                with zf.open(info) as rc, open(target, "wb") as out:
                    while True:
                        chunk = rc.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        out.write(chunk)
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"{src} is not a valid zip archive: {e}") from e
    except OSError as e:
        raise ArchiveError(f"failed to extract {src}: {e}") from e
    if not extracted_dir:
        raise ArchiveError(f"{src} contains no files")
    return os.path.normpath(extracted_dir)


def find_extracted_dir(data_dir: str, prefix: str) -> str:
    """Return the single subdirectory of data_dir whose name starts with prefix."""
    try:
        names = sorted(os.listdir(data_dir))
    except OSError as e:
        raise ArchiveError(f"cannot list {data_dir}: {e}") from e
    candidates = [
        n
        for n in names
        if n.startswith(prefix) and os.path.isdir(os.path.join(data_dir, n))
    ]
    if not candidates:
        raise ArchiveError(
            f"no directory starting with {prefix!r} in {data_dir}; "
            "remove it to download the archive again"
        )
    if len(candidates) > 1:
        raise ArchiveError(
            f"several directories starting with {prefix!r} in {data_dir}: "
            f"{', '.join(candidates)}"
        )
    return os.path.join(data_dir, candidates[0])


def prepare_data(
    data_dir: str, url: str, prefix: str, timeout: Optional[float] = None
) -> str:
    """Make sure the archive is extracted under data_dir and return its folder."""
    if os.path.exists(data_dir):
        logger.debug(f"{data_dir} exists, skipping download")
        return find_extracted_dir(data_dir, prefix)
    try:
        os.makedirs(data_dir)
    except OSError as e:
        raise ArchiveError(f"cannot create {data_dir}: {e}") from e

    z = os.path.join(data_dir, ARCHIVE_NAME)
    try:
        logger.info(f"Downloading {url}...")
        download_file(z, url, timeout=timeout)

        logger.info("Extracting...")
        extracted = unzip(z, data_dir)
        try:
            os.remove(z)
        except OSError as e:
            raise ArchiveError(f"cannot remove {z}: {e}") from e
    except ArchiveError:
        # data_dir only persists once the archive is fully extracted
        shutil.rmtree(data_dir, ignore_errors=True)
        raise
    return extracted
