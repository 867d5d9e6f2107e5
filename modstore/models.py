"""Stored module records and the JSON form of revision info."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO


@dataclass
class Module:
    """A module version as a document store keeps it."""

    module: str
    version: str
    mod: bytes = b""
    info: bytes = b""
    id: Any = None


@dataclass
class Version:
    """The go.mod, source archive and .info of one module version."""

    mod: bytes
    zip: BinaryIO
    info: bytes
    semver: str = ""


_ORIGIN_FIELDS = (
    ("vcs", "VCS"),
    ("url", "URL"),
    ("subdir", "Subdir"),
    ("tag_prefix", "TagPrefix"),
    ("tag_sum", "TagSum"),
    ("ref", "Ref"),
    ("hash", "Hash"),
    ("repo_sum", "RepoSum"),
)


def _lower_keys(data: dict) -> dict:
    return {str(key).lower(): value for key, value in data.items()}


@dataclass
class Origin:
    """Where a module version was resolved from and how to recheck it."""

    vcs: str = ""
    url: str = ""
    subdir: str = ""
    tag_prefix: str = ""
    tag_sum: str = ""
    ref: str = ""
    hash: str = ""
    repo_sum: str = ""

    def to_dict(self) -> dict[str, str]:
        """Return the JSON object form, leaving out empty fields."""
        return {
            key: getattr(self, attr) for attr, key in _ORIGIN_FIELDS if getattr(self, attr)
        }

    @classmethod
    def from_dict(cls, data: dict) -> Origin:
        lowered = _lower_keys(data)
        values = {}
        for attr, key in _ORIGIN_FIELDS:
            value = lowered.get(key.lower())
            if value is not None:
                values[attr] = str(value)
        return cls(**values)


_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_TIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_time(text: str) -> datetime:
    match = _TIME_RE.match(text)
    if match is None:
        raise ValueError(f"invalid timestamp {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "")[:6].ljust(6, "0"))
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


@dataclass
class RevInfo:
    """The document served as a module version's .info file."""

    origin: Origin | None = None
    name: str = ""
    short: str = ""
    version: str = ""
    time: datetime = field(default_factory=lambda: _ZERO_TIME)
    tags: list[str] | None = None

    def to_json(self) -> str:
        document = {
            "Origin": self.origin.to_dict() if self.origin is not None else None,
            "Name": self.name,
            "Short": self.short,
            "Version": self.version,
            "Time": _format_time(self.time),
            "Tags": list(self.tags) if self.tags is not None else None,
        }
        return json.dumps(document, separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str | bytes) -> RevInfo:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("revision info must be a JSON object")
        lowered = _lower_keys(data)
        origin_data = lowered.get("origin")
        if origin_data is not None and not isinstance(origin_data, dict):
            raise ValueError("Origin must be a JSON object")
        tags = lowered.get("tags")
        if tags is not None and not isinstance(tags, list):
            raise ValueError("Tags must be a JSON array")
        raw_time = lowered.get("time")
        return cls(
            origin=Origin.from_dict(origin_data) if origin_data is not None else None,
            name=str(lowered.get("name") or ""),
            short=str(lowered.get("short") or ""),
            version=str(lowered.get("version") or ""),
            time=_parse_time(raw_time) if raw_time else _ZERO_TIME,
            tags=[str(tag) for tag in tags] if tags is not None else None,
        )