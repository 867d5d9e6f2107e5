"""Module storage kept as plain files in a directory tree."""

from __future__ import annotations

import os
import re
import shutil
from typing import BinaryIO, Iterator

from modstore.backend import AllPathParams, Backend, Kind, SizedReader, StorageError

_TOKEN_SEPARATOR = "|"

_NUM = r"(?:0|[1-9]\d*)"
_PRE_IDENT = r"(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)"
_BUILD_IDENT = r"[0-9A-Za-z-]+"
_SEMVER_RE = re.compile(
    rf"^v(?P<major>{_NUM})"
    rf"(?:\.(?P<minor>{_NUM})"
    rf"(?:\.(?P<patch>{_NUM})"
    rf"(?:-(?P<pre>{_PRE_IDENT}(?:\.{_PRE_IDENT})*))?"
    rf"(?:\+(?P<build>{_BUILD_IDENT}(?:\.{_BUILD_IDENT})*))?"
    r")?)?$"
)


def _canonical_semver(version: str) -> str:
    """Canonical ``vMAJOR.MINOR.PATCH[-pre]`` form of a version, or "" if invalid."""
    match = _SEMVER_RE.match(version)
    if match is None:
        return ""
    major, minor, patch, pre = match.group("major", "minor", "patch", "pre")
    if minor is None:
        return f"v{major}.0.0"
    if patch is None:
        return f"v{major}.{minor}.0"
    canonical = f"v{major}.{minor}.{patch}"
    return f"{canonical}-{pre}" if pre else canonical


class _LocalFilesystem:
    """Filesystem primitives backed by the operating system."""

    path = os.path

    def exists(self, p: str) -> bool:
        return os.path.exists(p)

    def listdir(self, p: str) -> list[tuple[str, bool]]:
        with os.scandir(p) as entries:
            return sorted((entry.name, entry.is_dir()) for entry in entries)

    def read_bytes(self, p: str) -> bytes:
        with open(p, "rb") as handle:
            return handle.read()

    def write_bytes(self, p: str, data: bytes) -> None:
        with open(p, "wb") as handle:
            handle.write(data)

    def write_stream(self, p: str, source: BinaryIO) -> None:
        with open(p, "wb") as handle:
            shutil.copyfileobj(source, handle)

    def open_read(self, p: str) -> SizedReader:
        handle = open(p, "rb")
        try:
            size = os.fstat(handle.fileno()).st_size
        except OSError:
            handle.close()
            raise
        return SizedReader(handle, size)

    def makedirs(self, p: str) -> None:
        os.makedirs(p, exist_ok=True)

    def mkdir(self, p: str) -> None:
        os.mkdir(p)

    def remove_all(self, p: str) -> None:
        if os.path.isdir(p) and not os.path.islink(p):
            shutil.rmtree(p)
        elif os.path.lexists(p):
            os.remove(p)


def _mod_ver_from_token(token: str) -> tuple[str, str]:
    if not token:
        return "", ""
    values = token.split(_TOKEN_SEPARATOR)
    if len(values) < 2:
        raise StorageError("fs.Catalog", "Invalid token", kind=Kind.BAD_REQUEST)
    return values[0], values[1]


def _token_from_mod_ver(module: str, version: str) -> str:
    return module + _TOKEN_SEPARATOR + version


class FileSystemStorage(Backend):
    """Stores each module version as ``<root>/<module>/<version>/`` holding three files."""

    def __init__(self, root_dir: str) -> None:
        self._bind(root_dir, _LocalFilesystem())

    def _bind(self, root_dir: str, filesystem) -> None:
        try:
            present = filesystem.exists(root_dir)
        except OSError as err:
            raise StorageError(
                "fs.NewStorage",
                f"could not check if root directory `{root_dir}` exists: {err}",
                cause=err,
            ) from err
        if not present:
            raise StorageError("fs.NewStorage", f"root directory `{root_dir}` does not exist")
        self.root_dir = root_dir
        self._fs = filesystem
        self._path = filesystem.path

    def _module_location(self, module: str) -> str:
        return self._path.join(self.root_dir, module)

    def _version_location(self, module: str, version: str) -> str:
        return self._path.join(self._module_location(module), version)

    def exists(self, module: str, version: str) -> bool:
        """True if all three files of the version are present."""
        try:
            files = self._fs.listdir(self._version_location(module, version))
        except FileNotFoundError:
            return False
        except OSError as err:
            raise StorageError("fs.Exists", module=module, version=version, cause=err) from err
        return len(files) == 3

    def delete(self, module: str, version: str) -> None:
        if not self.exists(module, version):
            raise StorageError("fs.Delete", module=module, version=version, kind=Kind.NOT_FOUND)
        try:
            self._fs.remove_all(self._version_location(module, version))
        except OSError as err:
            raise StorageError("fs.Delete", module=module, version=version, cause=err) from err

    def _read(self, op: str, module: str, version: str, name: str) -> bytes:
        path = self._path.join(self._version_location(module, version), name)
        try:
            return self._fs.read_bytes(path)
        except OSError as err:
            raise StorageError(
                op, module=module, version=version, kind=Kind.NOT_FOUND
            ) from err

    def info(self, module: str, version: str) -> bytes:
        return self._read("fs.Info", module, version, version + ".info")

    def go_mod(self, module: str, version: str) -> bytes:
        return self._read("fs.GoMod", module, version, "go.mod")

    def zip(self, module: str, version: str) -> SizedReader:
        path = self._path.join(self._version_location(module, version), "source.zip")
        try:
            return self._fs.open_read(path)
        except OSError as err:
            raise StorageError(
                "fs.Zip", module=module, version=version, kind=Kind.NOT_FOUND
            ) from err

    def list(self, module: str) -> list[str]:
        """Stored versions of ``module`` whose directory name is a full semantic version."""
        try:
            entries = self._fs.listdir(self._module_location(module))
        except FileNotFoundError:
            return []
        except OSError as err:
            raise StorageError(
                "fs.List", module=module, kind=Kind.UNEXPECTED, cause=err
            ) from err
        versions = []
        for name, is_dir in entries:
            if not is_dir:
                continue
            canonical = _canonical_semver(name)
            if canonical and name.startswith(canonical):
                versions.append(name)
        return versions

    def save(self, module: str, version: str, mod: bytes, zip: BinaryIO, info: bytes) -> None:
        directory = self._version_location(module, version)
        join = self._path.join
        try:
            self._fs.makedirs(directory)
            self._fs.write_bytes(join(directory, "go.mod"), mod)
            self._fs.write_stream(join(directory, "source.zip"), zip)
        except OSError as err:
            raise StorageError("fs.Save", module=module, version=version, cause=err) from err
        try:
            self._fs.write_bytes(join(directory, version + ".info"), info)
        except OSError as err:
            raise StorageError("fs.Save", cause=err) from err

    def _walk(self, top: str) -> Iterator[str]:
        yield top
        yield from self._walk_dir(top)

    def _walk_dir(self, directory: str) -> Iterator[str]:
        for name, is_dir in self._fs.listdir(directory):
            child = self._path.join(directory, name)
            yield child
            if is_dir:
                yield from self._walk_dir(child)

    def catalog(self, token: str, page_size: int) -> tuple[list[AllPathParams], str]:
        """Return up to ``page_size`` module versions after ``token`` and the next token."""
        from_module, from_version = _mod_ver_from_token(token)
        path = self._path
        results: list[AllPathParams] = []
        next_token = ""
        count = page_size
        try:
            for entry in self._walk(self.root_dir):
                if not path.basename(entry).endswith(".info"):
                    continue
                mod_ver = path.relpath(path.dirname(entry), self.root_dir)
                head, version = path.split(mod_ver)
                module = path.normpath(head).replace(path.sep, "/")
                if from_module and module < from_module:
                    continue
                if from_version and version <= from_version:
                    continue
                results.append(AllPathParams(module=module, version=version))
                count -= 1
                if count == 0:
                    next_token = _token_from_mod_ver(module, version)
                    break
        except OSError as err:
            raise StorageError("fs.Catalog", kind=Kind.UNEXPECTED, cause=err) from err
        return results, next_token

    def clear(self) -> None:
        """Remove everything stored and recreate an empty root directory."""
        self._fs.remove_all(self.root_dir)
        self._fs.mkdir(self.root_dir)


def new_storage(root_dir: str) -> FileSystemStorage:
    """Storage rooted at ``root_dir``, which must already exist."""
    return FileSystemStorage(root_dir)