import json
import os
import sys
import hashlib
import platform
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from countryjs.errors import OutputError

MANIFEST_NAME = "manifest.json"


def sha256_of_bytes(b: bytes) -> str:
    h = hashlib.sha256()
    h.update(b)
    return h.hexdigest()


def sha256_of_file(path: str) -> Optional[str]:
    try:
        h = hashlib.sha256()
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                h.update(chunk)
        return h.hexdigest()
    except OSError:
        return None


def environment_manifest() -> Dict[str, Any]:
    return {
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "python_executable": sys.executable,
        "cwd": os.getcwd(),
    }


def write_manifest(
    manifest: Dict[str, Any],
    path: str,
    outputs: Optional[Dict[str, str]] = None,
) -> str:
    """Write a manifest JSON to path, adding environment info and output hashes.

    Arguments:
      manifest: base manifest dict (will not be mutated)
      path: destination file
      outputs: optional mapping of output logical name -> file path to hash

    Returns path to manifest file.
    """
    m = dict(manifest)
    m.setdefault("run_timestamp_utc", datetime.now(timezone.utc).isoformat())
    m["environment"] = environment_manifest()

    out_hashes = {}
    for k, p in sorted((outputs or {}).items()):
        out_hashes[k] = {"path": p, "sha256": sha256_of_file(p)}
    m["outputs"] = out_hashes

    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(m, f, ensure_ascii=False, indent=2, default=str)
    except OSError as e:
        raise OutputError(f"cannot write manifest {path}: {e}") from e
    return path
