"""Read and write matter files: YAML frontmatter, a title heading, then the body.

File layout:

    ---
    status: planned
    tags: [cli, storage]
    created: 2026-01-04
    updated: 2026-01-09
    relates: [a1b2]
    owner: sam            # unknown keys are kept verbatim in Matter.extra
    ---

    # Title of the matter

    Free-form markdown body.

Known keys are emitted in a fixed order with list fields as flow sequences;
empty values are omitted. Unknown keys follow in their original order.
"""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Any

import yaml

from mull.errors import DecodeError
from mull.models import KNOWN_FIELDS, Matter

DELIMITER = "---"
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class _Loader(yaml.SafeLoader):
    """SafeLoader that keeps dates as plain strings."""


class _Dumper(yaml.SafeDumper):
    """SafeDumper that writes date-like strings unquoted and never emits anchors."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


for _cls in (_Loader, _Dumper):
    _cls.yaml_implicit_resolvers = {
        first: [(tag, rx) for tag, rx in resolvers if tag != _TIMESTAMP_TAG]
        for first, resolvers in _cls.yaml_implicit_resolvers.items()
    }


class _FlowList(list):
    """List rendered inline: ``[a, b]``."""


def _represent_flow_list(dumper: yaml.SafeDumper, data: _FlowList) -> yaml.Node:
    return dumper.represent_sequence("tag:yaml.org,2002:seq", data, flow_style=True)


_Dumper.add_representer(_FlowList, _represent_flow_list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def slugify(title: str) -> str:
    """Lower-case title with every run of non-alphanumerics collapsed to one hyphen."""
    s = "".join(c if c.isalnum() else "-" for c in title.lower())
    return re.sub(r"-+", "-", s).strip("-")


def id_from_filename(filename: str) -> str:
    return PurePath(filename).stem.split("-", 1)[0]


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _trim_blank_lines(text: str) -> str:
    lines = text.splitlines()
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def _split_frontmatter(text: str) -> tuple[str | None, str]:
    """Return (yaml_text, rest). yaml_text is None when there is no block."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        return None, text
    for i in range(1, len(lines)):
        if lines[i].rstrip() == DELIMITER:
            return "".join(lines[1:i]), "".join(lines[i + 1:])
    return None, text


# ---------------------------------------------------------------------------
# Decode / encode
# ---------------------------------------------------------------------------


def parse_metadata(yaml_text: str, source: str = "") -> dict[str, Any]:
    """Parse a frontmatter block into a mapping. Raises DecodeError."""
    try:
        raw = yaml.load(yaml_text, Loader=_Loader)  # noqa: S506 - SafeLoader subclass
    except yaml.YAMLError as exc:
        msg = f"parsing frontmatter of {source or '<matter>'}: {exc}"
        raise DecodeError(msg) from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        msg = f"parsing frontmatter of {source or '<matter>'}: expected a mapping, got {type(raw).__name__}"
        raise DecodeError(msg)
    return {str(k): v for k, v in raw.items()}


def decode(data: bytes | str, filename: str = "") -> Matter:
    """Build a Matter from file content.

    A file without a frontmatter block decodes with default metadata; a block
    that is not valid YAML (or not a mapping) raises DecodeError, as does
    content that is not UTF-8.
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"decoding {filename or '<matter>'}: {exc}"
            raise DecodeError(msg) from exc
    else:
        text = data
    matter = Matter(id=id_from_filename(filename) if filename else "", filename=filename)

    yaml_text, rest = _split_frontmatter(text)
    if yaml_text is not None:
        meta = parse_metadata(yaml_text, filename)
        matter.status = _as_str(meta.get("status"))
        matter.tags = _as_str_list(meta.get("tags"))
        matter.effort = _as_str(meta.get("effort"))
        matter.created = _as_str(meta.get("created"))
        matter.updated = _as_str(meta.get("updated"))
        matter.plan = _as_str(meta.get("plan"))
        matter.epic = _as_str(meta.get("epic"))
        matter.relates = _dedupe(_as_str_list(meta.get("relates")))
        matter.blocks = _dedupe(_as_str_list(meta.get("blocks")))
        matter.needs = _dedupe(_as_str_list(meta.get("needs")))
        matter.parent = _as_str(meta.get("parent"))
        matter.extra = {k: v for k, v in meta.items() if k not in KNOWN_FIELDS}

    body = _trim_blank_lines(rest)
    if body.startswith("# "):
        heading, _, remainder = body.partition("\n")
        matter.title = heading[2:].strip()
        matter.body = _trim_blank_lines(remainder)
    else:
        matter.body = body
    return matter


def build_metadata(matter: Matter) -> dict[str, Any]:
    """Ordered frontmatter mapping for a matter, empty fields omitted."""
    meta: dict[str, Any] = {}
    for key in KNOWN_FIELDS:
        value = getattr(matter, key)
        if not value:
            continue
        meta[key] = _FlowList(value) if isinstance(value, list) else value
    for key, value in matter.extra.items():
        if key not in meta:
            meta[key] = value
    return meta


def encode(matter: Matter) -> bytes:
    meta = build_metadata(matter)
    yaml_text = ""
    if meta:
        yaml_text = yaml.dump(
            meta,
            Dumper=_Dumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            width=1000,
        )
    parts = [f"{DELIMITER}\n", yaml_text, f"{DELIMITER}\n\n", f"# {matter.title}\n"]
    if matter.body:
        parts.append(f"\n{matter.body}\n")
    return "".join(parts).encode("utf-8")


def dump_yaml(data: Any) -> str:
    """Serialise a plain structure with the codec's YAML settings (used for the docket)."""
    return yaml.dump(data, Dumper=_Dumper, default_flow_style=False, sort_keys=False, allow_unicode=True, width=1000)


def load_yaml(text: str, source: str = "") -> Any:
    try:
        return yaml.load(text, Loader=_Loader)  # noqa: S506 - SafeLoader subclass
    except yaml.YAMLError as exc:
        msg = f"parsing {source or 'yaml'}: {exc}"
        raise DecodeError(msg) from exc
