"""Storage backend interface, storage errors and shared value types."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from typing import BinaryIO


class Kind(enum.Enum):
    """Category of a storage failure."""

    NOT_FOUND = "not found"
    BAD_REQUEST = "bad request"
    ALREADY_EXISTS = "already exists"
    UNEXPECTED = "unexpected"


class StorageError(Exception):
    """Failure of a storage operation, tagged with a kind and the module involved."""

    def __init__(
        self,
        op: str,
        message: str | None = None,
        *,
        kind: Kind | None = None,
        module: str = "",
        version: str = "",
        cause: BaseException | None = None,
    ) -> None:
        self.op = op
        self.message = message
        self._kind = kind
        self.module = module
        self.version = version
        self.cause = cause
        super().__init__(self.__str__())

    @property
    def kind(self) -> Kind:
        """The explicit kind, else the kind of the wrapped error, else UNEXPECTED."""
        if self._kind is not None:
            return self._kind
        if isinstance(self.cause, StorageError):
            return self.cause.kind
        return Kind.UNEXPECTED

    def __str__(self) -> str:
        parts = [self.op] if self.op else []
        if self.module:
            parts.append(f"{self.module}@{self.version}" if self.version else self.module)
        if self.message:
            parts.append(self.message)
        elif self.cause is not None:
            parts.append(str(self.cause))
        elif self._kind is not None:
            parts.append(self._kind.value)
        return ": ".join(parts)


@dataclass(frozen=True, order=True)
class AllPathParams:
    """A module path together with one of its versions."""

    module: str
    version: str


class SizedReader:
    """A readable, closable stream that knows its full length."""

    def __init__(self, stream: BinaryIO, size: int) -> None:
        self._stream = stream
        self.size = size

    def read(self, n: int = -1) -> bytes:
        return self._stream.read(n)

    def close(self) -> None:
        self._stream.close()

    @property
    def closed(self) -> bool:
        return bool(getattr(self._stream, "closed", False))

    def __enter__(self) -> SizedReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Backend(abc.ABC):
    """A complete storage backend: lister, getter, saver and deleter."""

    @abc.abstractmethod
    def list(self, module: str) -> list[str]:
        """Return every stored version of ``module``; empty if there are none."""

    @abc.abstractmethod
    def info(self, module: str, version: str) -> bytes:
        """Return the .info document; raise StorageError of kind NOT_FOUND if absent."""

    @abc.abstractmethod
    def go_mod(self, module: str, version: str) -> bytes:
        """Return the go.mod file; raise StorageError of kind NOT_FOUND if absent."""

    @abc.abstractmethod
    def zip(self, module: str, version: str) -> SizedReader:
        """Return the source archive; raise StorageError of kind NOT_FOUND if absent."""

    @abc.abstractmethod
    def save(self, module: str, version: str, mod: bytes, zip: BinaryIO, info: bytes) -> None:
        """Store the go.mod, source archive and .info of a module version."""

    @abc.abstractmethod
    def delete(self, module: str, version: str) -> None:
        """Remove a module version; raise StorageError of kind NOT_FOUND if absent."""


class ExistenceChecker:
    """Answers existence queries for a backend that cannot do so itself."""

    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    def exists(self, module: str, version: str) -> bool:
        try:
            self.backend.info(module, version)
        except StorageError as err:
            if err.kind is Kind.NOT_FOUND:
                return False
            raise
        return True


def with_checker(backend: Backend):
    """Return ``backend`` if it has an ``exists`` method, else wrap it in one."""
    if callable(getattr(backend, "exists", None)):
        return backend
    return ExistenceChecker(backend)