"""Render country lists as JavaScript ES modules.

Each output shape is first built as a small tree (JsObject / JsArray) and only
then serialized, so every string that reaches a file goes through js_string.
"""
import logging
import os
import re
from typing import Dict, Iterable, List, NamedTuple, Sequence, Tuple, Union

from countryjs.errors import OutputError
from countryjs.processing.registry import Country, by_code, by_name

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

# characters that cannot appear raw inside a single-quoted JS string
_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
    "\v": "\\v",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


class JsObject(NamedTuple):
    entries: List[Tuple[str, str]]
    # False keeps identifier-like keys bare (ISO codes)
    quote_keys: bool = False


class JsArray(NamedTuple):
    values: List[str]


JsNode = Union[JsObject, JsArray]


def js_string(value: str) -> str:
    out = []
    for ch in value:
        esc = _ESCAPES.get(ch)
        if esc is not None:
            out.append(esc)
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{ord(ch):02x}")
        else:
            out.append(ch)
    return "'" + "".join(out) + "'"


def js_key(key: str) -> str:
    if _IDENTIFIER.match(key):
        return key
    return js_string(key)


def _render_lines(node: JsNode) -> List[str]:
    if isinstance(node, JsObject):
        key = js_string if node.quote_keys else js_key
        return [f"{key(k)}: {js_string(v)}" for k, v in node.entries]
    return [js_string(v) for v in node.values]


def render_module(node: JsNode, export_style: str = "factory") -> str:
    """Serialize node as `export default ...` with one entry per line."""
    if isinstance(node, JsObject):
        opening, closing = "{", "}"
    else:
        opening, closing = "[", "]"
    if export_style == "factory":
        head, tail = f"export default () => ({opening}", f"{closing})"
    elif export_style == "object":
        head, tail = f"export default {opening}", closing
    else:
        raise ValueError(f"unknown export style: {export_style}")

    lines = _render_lines(node)
    body = ",\n".join(f"  {line}" for line in lines)
    if body:
        return f"{head}\n{body}\n{tail}\n"
    return f"{head}\n{tail}\n"


def code_name_map(countries: Iterable[Country]) -> JsObject:
    return JsObject([(c.code, c.name) for c in by_code(countries)])


def name_code_map(countries: Iterable[Country]) -> JsObject:
    return JsObject(
        [(c.name, c.code) for c in by_name(countries)], quote_keys=True
    )


def name_list(countries: Iterable[Country]) -> JsArray:
    return JsArray([c.name for c in by_name(countries)])


def code_list(countries: Iterable[Country]) -> JsArray:
    return JsArray([c.code for c in by_code(countries)])


def write_module(node: JsNode, path: str, export_style: str = "factory") -> str:
    logger.info(f"Generating {path}...")
    text = render_module(node, export_style)
    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
    except OSError as e:
        raise OutputError(f"cannot write {path}: {e}") from e
    return path


def locale_dir_name(locale: str) -> str:
    """'pt-BR' -> 'ptbr'"""
    return locale.replace("-", "").lower()


def emit_locale(
    countries: Sequence[Country],
    out_dir: str,
    locale: str,
    layout: str = "nested",
    export_style: str = "factory",
) -> Dict[str, str]:
    """Write the per-locale modules and return logical name -> path."""
    short = locale_dir_name(locale)
    if layout == "flat":
        path = os.path.join(out_dir, f"country-{short}.js")
        write_module(code_name_map(countries), path, export_style)
        return {f"{short}/country": path}
    if layout != "nested":
        raise ValueError(f"unknown layout: {layout}")

    locale_dir = os.path.join(out_dir, short)
    try:
        os.makedirs(locale_dir, exist_ok=True)
    except OSError as e:
        raise OutputError(f"cannot create {locale_dir}: {e}") from e

    shapes = [
        ("map-code-name", code_name_map(countries)),
        ("map-name-code", name_code_map(countries)),
        ("names", name_list(countries)),
    ]
    outputs: Dict[str, str] = {}
    for stem, node in shapes:
        path = os.path.join(locale_dir, f"{stem}.js")
        outputs[f"{short}/{stem}"] = write_module(node, path, export_style)
    return outputs
