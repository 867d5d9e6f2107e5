import io

import pytest

from modstore.backend import (
    AllPathParams,
    Backend,
    ExistenceChecker,
    Kind,
    SizedReader,
    StorageError,
    with_checker,
)


class DictBackend(Backend):
    def __init__(self, fail_with=None):
        self.data = {}
        self.fail_with = fail_with

    def list(self, module):
        return [v for (m, v) in self.data if m == module]

    def info(self, module, version):
        if self.fail_with is not None:
            raise self.fail_with
        try:
            return self.data[(module, version)][2]
        except KeyError:
            raise StorageError("dict.Info", kind=Kind.NOT_FOUND, module=module, version=version)

    def go_mod(self, module, version):
        return self.data[(module, version)][0]

    def zip(self, module, version):
        payload = self.data[(module, version)][1]
        return SizedReader(io.BytesIO(payload), len(payload))

    def save(self, module, version, mod, zip, info):
        self.data[(module, version)] = (mod, zip.read(), info)

    def delete(self, module, version):
        del self.data[(module, version)]


class CheckingBackend(DictBackend):
    def exists(self, module, version):
        return (module, version) in self.data


def test_backend_cannot_be_instantiated_directly():
    with pytest.raises(TypeError):
        Backend()


def test_checker_reports_saved_version():
    backend = DictBackend()
    backend.save("github.com/gomods/athens", "v1.2.3", b"456", io.BytesIO(b"789"), b"123")
    checker = with_checker(backend)
    assert isinstance(checker, ExistenceChecker)
    assert checker.exists("github.com/gomods/athens", "v1.2.3") is True


def test_checker_reports_missing_version():
    checker = ExistenceChecker(DictBackend())
    assert checker.exists("github.com/gomods/athens", "yyy") is False


def test_checker_propagates_other_errors():
    failure = StorageError("dict.Info", "boom", kind=Kind.UNEXPECTED)
    checker = ExistenceChecker(DictBackend(fail_with=failure))
    with pytest.raises(StorageError) as excinfo:
        checker.exists("m", "v1.0.0")
    assert excinfo.value is failure


def test_with_checker_returns_backend_that_checks_itself():
    backend = CheckingBackend()
    assert with_checker(backend) is backend


def test_error_kind_comes_from_cause_when_unset():
    inner = StorageError("inner", kind=Kind.NOT_FOUND)
    outer = StorageError("outer", cause=inner)
    assert outer.kind is Kind.NOT_FOUND


def test_error_kind_defaults_to_unexpected():
    err = StorageError("op", cause=ValueError("bad"))
    assert err.kind is Kind.UNEXPECTED
    assert "bad" in str(err)


def test_error_message_names_module_and_version():
    err = StorageError("fs.Info", kind=Kind.NOT_FOUND, module="mx", version="1.1.1")
    text = str(err)
    assert "fs.Info" in text
    assert "mx@1.1.1" in text


def test_sized_reader_reads_and_closes():
    stream = io.BytesIO(b"789")
    with SizedReader(stream, 3) as reader:
        assert reader.size == 3
        assert reader.read() == b"789"
    assert stream.closed


def test_sized_reader_partial_read():
    reader = SizedReader(io.BytesIO(b"789"), 3)
    assert reader.read(1) == b"7"
    assert reader.read(-1) == b"89"


def test_all_path_params_compare_by_value():
    a = AllPathParams(module="m", version="v1.0.0")
    b = AllPathParams("m", "v1.0.0")
    assert a == b
    assert sorted([AllPathParams("z", "v1"), a]) == [a, AllPathParams("z", "v1")]