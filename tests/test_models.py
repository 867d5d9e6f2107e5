import io
import json
from datetime import datetime, timedelta, timezone

import pytest

from modstore.models import Module, Origin, RevInfo, Version


def test_origin_to_dict_omits_empty_fields():
    origin = Origin(vcs="git", ref="refs/heads/main")
    assert origin.to_dict() == {"VCS": "git", "Ref": "refs/heads/main"}


def test_origin_round_trip():
    origin = Origin(
        vcs="git",
        url="https://example.com/repo",
        subdir="sub",
        tag_prefix="sub/",
        tag_sum="t1",
        ref="refs/tags/v1.2.3",
        hash="abc",
        repo_sum="r1",
    )
    assert Origin.from_dict(origin.to_dict()) == origin


def test_origin_from_dict_ignores_key_case():
    assert Origin.from_dict({"vcs": "git", "HASH": "abc"}) == Origin(vcs="git", hash="abc")


def test_default_rev_info_json():
    document = json.loads(RevInfo().to_json())
    assert document["Origin"] is None
    assert document["Tags"] is None
    assert document["Time"] == "0001-01-01T00:00:00Z"
    assert list(document) == ["Origin", "Name", "Short", "Version", "Time", "Tags"]


def test_rev_info_round_trip():
    info = RevInfo(
        origin=Origin(vcs="git", hash="abc"),
        name="abc",
        short="ab",
        version="v1.2.3",
        time=datetime(2023, 3, 4, 5, 6, 7, 250000, tzinfo=timezone.utc),
        tags=["v1.2.3"],
    )
    assert RevInfo.from_json(info.to_json()) == info


def test_rev_info_round_trip_with_offset():
    zone = timezone(timedelta(hours=-7))
    info = RevInfo(version="v0.1.0", time=datetime(2020, 1, 2, 3, 4, 5, tzinfo=zone))
    restored = RevInfo.from_json(info.to_json())
    assert restored.time == info.time
    assert restored.time.utcoffset() == info.time.utcoffset()


def test_rev_info_trims_fraction_zeros():
    info = RevInfo(time=datetime(2020, 1, 2, 3, 4, 5, 500000, tzinfo=timezone.utc))
    assert json.loads(info.to_json())["Time"].endswith(".5Z")


def test_rev_info_truncates_nanoseconds():
    info = RevInfo.from_json('{"Version":"v1.0.0","Time":"2020-01-02T03:04:05.123456789Z"}')
    assert info.time.microsecond == 123456
    assert info.version == "v1.0.0"
    assert info.origin is None


def test_rev_info_rejects_bad_time():
    with pytest.raises(ValueError):
        RevInfo.from_json('{"Time":"yesterday"}')


def test_rev_info_rejects_non_object():
    with pytest.raises(ValueError):
        RevInfo.from_json("[1, 2]")


def test_module_and_version_hold_their_data():
    module = Module(module="getTestModule", version="v1.2.3", mod=b"456", info=b"123")
    assert module.id is None
    assert (module.mod, module.info) == (b"456", b"123")
    version = Version(mod=b"456", zip=io.BytesIO(b"789"), info=b"123")
    assert version.zip.read() == b"789"
    assert version.semver == ""