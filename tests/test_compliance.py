import io

import pytest

from modstore.backend import Backend, Kind, SizedReader, StorageError
from modstore.compliance import ComplianceFailure, mock_module, run_benchmarks, run_tests
from modstore.fs import FileSystemStorage
from modstore.mem import MemoryStorage


class DictBackend(Backend):
    def __init__(self):
        self.store = {}
        self.saves = 0

    def _get(self, module, version):
        try:
            return self.store[(module, version)]
        except KeyError:
            raise StorageError(
                "dict.Get", kind=Kind.NOT_FOUND, module=module, version=version
            ) from None

    def list(self, module):
        return [v for (m, v) in self.store if m == module]

    def info(self, module, version):
        return self._get(module, version)[2]

    def go_mod(self, module, version):
        return self._get(module, version)[0]

    def zip(self, module, version):
        data = self._get(module, version)[1]
        return SizedReader(io.BytesIO(data), len(data))

    def save(self, module, version, mod, zip, info):
        self.saves += 1
        self.store[(module, version)] = (mod, zip.read(), info)

    def delete(self, module, version):
        self._get(module, version)
        del self.store[(module, version)]

    def clear(self):
        self.store.clear()


class ReversedListBackend(DictBackend):
    def list(self, module):
        return list(reversed(super().list(module)))


class PrefixListBackend(DictBackend):
    def list(self, module):
        return [v for (m, v) in self.store if m.startswith(module)]


class LenientDeleteBackend(DictBackend):
    def delete(self, module, version):
        self.store.pop((module, version), None)


class WrongKindDeleteBackend(DictBackend):
    def delete(self, module, version):
        if (module, version) not in self.store:
            raise StorageError("dict.Delete", kind=Kind.UNEXPECTED)
        del self.store[(module, version)]


class WrongSizeBackend(DictBackend):
    def zip(self, module, version):
        data = self._get(module, version)[1]
        return SizedReader(io.BytesIO(data), len(data) + 1)


class BlindInfoBackend(DictBackend):
    def info(self, module, version):
        raise StorageError("dict.Info", kind=Kind.NOT_FOUND)


def counting(clear):
    calls = []

    def wrapped():
        calls.append(True)
        clear()

    return wrapped, calls


def test_mock_module_contents():
    mock = mock_module()
    assert mock.info == b"123"
    assert mock.mod == b"456"
    assert mock.zip.read() == b"789"


def test_mock_module_streams_are_independent():
    first = mock_module()
    assert first.zip.read() == b"789"
    assert mock_module().zip.read() == b"789"


def test_run_tests_passes_on_conforming_backend():
    backend = DictBackend()
    clear, calls = counting(backend.clear)
    run_tests(backend, clear)
    assert len(calls) == 2
    assert backend.store == {}
    assert backend.saves > 0


@pytest.mark.parametrize("kind", ["memory", "fs"])
def test_run_tests_passes_on_bundled_backends(kind, tmp_path):
    backend = MemoryStorage() if kind == "memory" else FileSystemStorage(str(tmp_path))
    clear, calls = counting(backend.clear)
    run_tests(backend, clear)
    assert len(calls) == 2
    assert backend.list("github.com/gomods/athens") == []
    assert backend.exists("github.com/gomods/athens", "v1.2.3") is False


def test_reversed_listing_fails():
    backend = ReversedListBackend()
    with pytest.raises(ComplianceFailure, match="want"):
        run_tests(backend, backend.clear)


def test_prefix_listing_fails():
    backend = PrefixListBackend()
    with pytest.raises(ComplianceFailure, match="github.com/one"):
        run_tests(backend, backend.clear)


def test_delete_of_missing_version_must_fail():
    backend = LenientDeleteBackend()
    with pytest.raises(ComplianceFailure, match="not-found"):
        run_tests(backend, backend.clear)


def test_missing_version_needs_not_found_kind():
    backend = WrongKindDeleteBackend()
    with pytest.raises(ComplianceFailure, match="expected kind"):
        run_tests(backend, backend.clear)


def test_wrong_zip_size_fails():
    backend = WrongSizeBackend()
    with pytest.raises(ComplianceFailure, match="size"):
        run_tests(backend, backend.clear)


def test_failing_clear_is_reported():
    def broken_clear():
        raise OSError("disk gone")

    with pytest.raises(ComplianceFailure, match="pre-clearing backend failed"):
        run_tests(DictBackend(), broken_clear)


def test_backend_is_cleared_after_a_failure():
    backend = ReversedListBackend()
    clear, calls = counting(backend.clear)
    with pytest.raises(ComplianceFailure):
        run_tests(backend, clear)
    assert len(calls) == 2
    assert backend.store == {}


def test_run_benchmarks_reports_every_operation():
    backend = DictBackend()
    rounds = 3
    results = run_benchmarks(backend, backend.clear, rounds)
    assert set(results) == {"list", "save", "delete", "exists"}
    assert all(elapsed >= 0 for elapsed in results.values())
    assert backend.saves == 2 + 2 * rounds
    assert backend.store == {}


def test_run_benchmarks_on_memory_storage():
    backend = MemoryStorage()
    clear, calls = counting(backend.clear)
    results = run_benchmarks(backend, clear, 2)
    assert list(results) == ["list", "save", "delete", "exists"]
    assert len(calls) == 8
    assert backend.list("benchListModule") == []


def test_run_benchmarks_detects_missing_existence():
    backend = BlindInfoBackend()
    with pytest.raises(ComplianceFailure, match="should exist"):
        run_benchmarks(backend, backend.clear, 1)