"""Conformance checks and timing runs that any storage backend must pass."""

from __future__ import annotations

import contextlib
import io
import random
import time
from typing import Any, Callable

from modstore.backend import Backend, Kind, StorageError, with_checker
from modstore.models import Version

Clear = Callable[[], None]


class ComplianceFailure(AssertionError):
    """A backend did not behave as the storage contract requires."""


def mock_module() -> Version:
    """A small module version with a fresh, unread archive stream."""
    return Version(info=b"123", mod=b"456", zip=io.BytesIO(b"789"))


def _call(what: str, fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return fn(*args)
    except StorageError as err:
        raise ComplianceFailure(f"{what}: {err}") from err


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ComplianceFailure(message)


def _expect_not_found(what: str, fn: Callable[..., Any], *args: Any) -> None:
    try:
        fn(*args)
    except StorageError as err:
        _require(
            err.kind is Kind.NOT_FOUND,
            f"{what}: expected kind {Kind.NOT_FOUND.value!r}, got {err.kind.value!r}",
        )
    else:
        raise ComplianceFailure(f"{what}: expected a not-found error, got none")


def _clear(clear: Clear, when: str) -> None:
    try:
        clear()
    except Exception as err:
        raise ComplianceFailure(f"{when}-clearing backend failed: {err}") from err


def _save_mock(backend: Backend, module: str, version: str) -> None:
    mock = mock_module()
    _call(
        f"save of {module}@{version} failed",
        backend.save,
        module,
        version,
        mock.mod,
        mock.zip,
        mock.info,
    )


def _delete_quietly(backend: Backend, module: str, version: str) -> None:
    with contextlib.suppress(StorageError):
        backend.delete(module, version)


def _test_not_found(backend: Backend) -> None:
    module, version = "github.com/gomods/athens", "yyy"
    _expect_not_found("delete of a missing version", backend.delete, module, version)
    _expect_not_found("go.mod of a missing version", backend.go_mod, module, version)
    _expect_not_found("info of a missing version", backend.info, module, version)
    versions = _call("list of a missing module", backend.list, module)
    _require(len(versions) == 0, f"list of a missing module returned {versions!r}")
    _expect_not_found("zip of a missing version", backend.zip, module, version)


def _test_list(backend: Backend) -> None:
    module = "github.com/gomods/athens"
    versions = ["v1.1.0", "v1.2.0", "v1.3.0"]
    try:
        for version in versions:
            _save_mock(backend, module, version)
        listed = _call(f"list of {module}", backend.list, module)
        _require(
            list(listed) == versions,
            f"list of {module} returned {listed!r}, want {versions!r}",
        )
    finally:
        for version in versions:
            _delete_quietly(backend, module, version)


def _test_list_suffix(backend: Backend) -> None:
    module_versions = {
        "github.com/one/two": ["v1.1.0", "v1.2.0", "v1.3.0"],
        "github.com/one/two/v2": ["v2.1.0"],
        "github.com/one/two-other": ["v0.9.0"],
        # not a module but a valid query, so no versions
        "github.com/one": [],
    }
    try:
        for module, versions in module_versions.items():
            for version in versions:
                _save_mock(backend, module, version)
        for module, versions in module_versions.items():
            listed = _call(f"list of {module}", backend.list, module)
            if not versions:
                _require(not listed, f"list of {module} returned {listed!r}, want nothing")
            else:
                _require(
                    list(listed) == versions,
                    f"list of {module} returned {listed!r}, want {versions!r}",
                )
    finally:
        for module, versions in module_versions.items():
            for version in versions:
                _delete_quietly(backend, module, version)


def _test_delete(backend: Backend) -> None:
    module = "github.com/gomods/athens"
    version = f"delete{random.getrandbits(63)}"
    _save_mock(backend, module, version)
    _call(f"delete of {module}@{version}", backend.delete, module, version)
    exists = _call("exists after delete", with_checker(backend).exists, module, version)
    _require(not exists, f"{module}@{version} still exists after delete")


def _test_get(backend: Backend) -> None:
    module, version = "github.com/gomods/athens", "v1.2.3"
    mock = mock_module()
    zip_bytes = mock.zip.read()
    with contextlib.suppress(StorageError):
        backend.save(module, version, mock.mod, io.BytesIO(zip_bytes), mock.info)
    try:
        info = _call("info", backend.info, module, version)
        _require(info == mock.info, f"info returned {info!r}, want {mock.info!r}")
        mod = _call("go.mod", backend.go_mod, module, version)
        _require(mod == mock.mod, f"go.mod returned {mod!r}, want {mock.mod!r}")
        reader = _call("zip", backend.zip, module, version)
        try:
            given = reader.read()
        finally:
            reader.close()
        _require(given == zip_bytes, f"zip returned {given!r}, want {zip_bytes!r}")
        _require(
            reader.size == len(zip_bytes),
            f"zip size is {reader.size}, want {len(zip_bytes)}",
        )
    finally:
        _delete_quietly(backend, module, version)


def _test_exists(backend: Backend) -> None:
    module, version = "github.com/gomods/athens", "v1.2.3"
    mock = mock_module()
    zip_bytes = mock.zip.read()
    with contextlib.suppress(StorageError):
        backend.save(module, version, mock.mod, io.BytesIO(zip_bytes), mock.info)
    try:
        exists = _call("exists", with_checker(backend).exists, module, version)
        _require(exists is True, f"{module}@{version} should exist after save")
    finally:
        _delete_quietly(backend, module, version)


def _test_should_not_exist(backend: Backend) -> None:
    module, version = "github.com/gomods/shouldNotExist", "v1.2.3-pre.1"
    mock = mock_module()
    zip_bytes = mock.zip.read()
    _call(
        "should successfully save a mock module",
        backend.save,
        module,
        version,
        mock.mod,
        io.BytesIO(zip_bytes),
        mock.info,
    )
    try:
        prefix_version = "v1.2.3-pre"
        exists = _call("exists", with_checker(backend).exists, module, prefix_version)
        _require(
            not exists,
            "a non existing version that has the same prefix of an existing version "
            "should not exist",
        )
    finally:
        _delete_quietly(backend, module, version)


_CHECKS = (
    _test_not_found,
    _test_list,
    _test_list_suffix,
    _test_delete,
    _test_get,
    _test_exists,
    _test_should_not_exist,
)


def run_tests(backend: Backend, clear: Clear) -> None:
    """Run every conformance check against ``backend``; raise ComplianceFailure on a miss.

    ``clear`` empties the backend and is called before and after the checks.
    """
    _clear(clear, "pre")
    try:
        for check in _CHECKS:
            check(backend)
    finally:
        _clear(clear, "post")


def _timed(rounds: int, body: Callable[[int], None]) -> float:
    start = time.perf_counter()
    for i in range(rounds):
        body(i)
    return time.perf_counter() - start


def _bench_list(backend: Backend, rounds: int) -> float:
    module, version = "benchListModule", "1.0.1"
    _save_mock(backend, module, version)
    return _timed(rounds, lambda _: _call("error in listing module", backend.list, module))


def _bench_save(backend: Backend, rounds: int) -> float:
    module, version = "benchSaveModule", "1.0.1"
    mock = mock_module()
    zip_bytes = mock.zip.read()

    def body(i: int) -> None:
        _call(
            "save failed",
            backend.save,
            f"save-{module}-{i}",
            version,
            mock.mod,
            io.BytesIO(zip_bytes),
            mock.info,
        )

    return _timed(rounds, body)


def _bench_delete(backend: Backend, rounds: int) -> float:
    module, version = "benchDeleteModule", "1.0.1"
    mock = mock_module()
    zip_bytes = mock.zip.read()

    def body(i: int) -> None:
        name = f"del-{module}-{i}"
        _call(
            f"saving {name} for storage failed",
            backend.save,
            name,
            version,
            mock.mod,
            io.BytesIO(zip_bytes),
            mock.info,
        )
        _call(f"delete failed: {name}", backend.delete, name, version)

    return _timed(rounds, body)


def _bench_exists(backend: Backend, rounds: int) -> float:
    module, version = "benchExistsModule", "1.0.1"
    _save_mock(backend, module, version)
    checker = with_checker(backend)

    def body(_: int) -> None:
        exists = _call("exists", checker.exists, module, version)
        _require(exists is True, f"module {module}@{version} should exist")

    return _timed(rounds, body)


_BENCHMARKS = (
    ("list", _bench_list),
    ("save", _bench_save),
    ("delete", _bench_delete),
    ("exists", _bench_exists),
)


def run_benchmarks(backend: Backend, clear: Clear, rounds: int = 100) -> dict[str, float]:
    """Time ``rounds`` repetitions of list, save, delete and exists.

    Returns the elapsed seconds of each, keyed by operation name.
    """
    results: dict[str, float] = {}
    for name, bench in _BENCHMARKS:
        _clear(clear, "pre")
        try:
            results[name] = bench(backend, rounds)
        finally:
            _clear(clear, "post")
    return results