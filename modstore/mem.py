"""Module storage held entirely in memory."""

from __future__ import annotations

import errno
import io
import posixpath
import threading
import uuid
from typing import BinaryIO

from modstore.backend import AllPathParams, SizedReader
from modstore.fs import FileSystemStorage


def _not_found(p: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, "file does not exist", p)


class _MemoryFilesystem:
    """A thread-safe tree of directories and files kept in dictionaries."""

    path = posixpath

    def __init__(self) -> None:
        self._dirs: set[str] = {"/"}
        self._files: dict[str, bytes] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _norm(p: str) -> str:
        return posixpath.normpath(p)

    def exists(self, p: str) -> bool:
        p = self._norm(p)
        with self._lock:
            return p in self._dirs or p in self._files

    def listdir(self, p: str) -> list[tuple[str, bool]]:
        p = self._norm(p)
        with self._lock:
            if p in self._files:
                raise NotADirectoryError(errno.ENOTDIR, "not a directory", p)
            if p not in self._dirs:
                raise _not_found(p)
            entries = [
                (posixpath.basename(d), True)
                for d in self._dirs
                if d != p and posixpath.dirname(d) == p
            ]
            entries.extend(
                (posixpath.basename(f), False)
                for f in self._files
                if posixpath.dirname(f) == p
            )
        return sorted(entries)

    def read_bytes(self, p: str) -> bytes:
        p = self._norm(p)
        with self._lock:
            if p in self._dirs:
                raise IsADirectoryError(errno.EISDIR, "is a directory", p)
            try:
                return self._files[p]
            except KeyError:
                raise _not_found(p) from None

    def write_bytes(self, p: str, data: bytes) -> None:
        p = self._norm(p)
        with self._lock:
            if p in self._dirs:
                raise IsADirectoryError(errno.EISDIR, "is a directory", p)
            if posixpath.dirname(p) not in self._dirs:
                raise _not_found(p)
            self._files[p] = bytes(data)

    def write_stream(self, p: str, source: BinaryIO) -> None:
        self.write_bytes(p, source.read())

    def open_read(self, p: str) -> SizedReader:
        data = self.read_bytes(p)
        return SizedReader(io.BytesIO(data), len(data))

    def makedirs(self, p: str) -> None:
        p = self._norm(p)
        with self._lock:
            chain = []
            current = p
            while current not in self._dirs:
                if current in self._files:
                    raise NotADirectoryError(errno.ENOTDIR, "not a directory", current)
                chain.append(current)
                current = posixpath.dirname(current)
            self._dirs.update(chain)

    def mkdir(self, p: str) -> None:
        p = self._norm(p)
        with self._lock:
            if p in self._dirs or p in self._files:
                raise FileExistsError(errno.EEXIST, "file exists", p)
            if posixpath.dirname(p) not in self._dirs:
                raise _not_found(p)
            self._dirs.add(p)

    def remove_all(self, p: str) -> None:
        p = self._norm(p)
        prefix = p.rstrip("/") + "/"
        with self._lock:
            self._files = {
                f: data for f, data in self._files.items() if f != p and not f.startswith(prefix)
            }
            self._dirs = {d for d in self._dirs if d != p and not d.startswith(prefix)}

    def make_temp_dir(self) -> str:
        directory = posixpath.join("/tmp", uuid.uuid4().hex)
        self.makedirs(directory)
        return directory


class MemoryStorage(FileSystemStorage):
    """File-layout storage whose files live only in this process's memory."""

    def __init__(self) -> None:
        filesystem = _MemoryFilesystem()
        self._bind(filesystem.make_temp_dir(), filesystem)

    def list(self, module: str) -> list[str]:
        """Versions of ``module`` held in memory."""
        return super().list(module)

    def info(self, module: str, version: str) -> bytes:
        """The .info document of a module version."""
        return super().info(module, version)

    def go_mod(self, module: str, version: str) -> bytes:
        """The go.mod file of a module version."""
        return super().go_mod(module, version)

    def zip(self, module: str, version: str) -> SizedReader:
        """A reader over the source archive of a module version."""
        return super().zip(module, version)

    def save(self, module: str, version: str, mod: bytes, zip: BinaryIO, info: bytes) -> None:
        """Store go.mod, source archive and .info of a module version."""
        super().save(module, version, mod, zip, info)

    def delete(self, module: str, version: str) -> None:
        """Remove a module version; raises a not-found error if absent."""
        super().delete(module, version)

    def exists(self, module: str, version: str) -> bool:
        """Whether all three files of a module version are present."""
        return super().exists(module, version)

    def catalog(self, token: str, page_size: int) -> tuple[list[AllPathParams], str]:
        """A page of stored module versions and the token of the next page."""
        return super().catalog(token, page_size)

    def clear(self) -> None:
        """Drop everything and recreate the empty root directory."""
        super().clear()


def new_storage() -> MemoryStorage:
    """A fresh, empty in-memory storage."""
    return MemoryStorage()