"""Blob naming and parallel upload or deletion of a module version's files."""

from __future__ import annotations

import queue
import threading
import time
from typing import BinaryIO, Callable

from modstore.backend import StorageError

Uploader = Callable[[str, str, BinaryIO], None]
Deleter = Callable[[str], None]

_FILES = ("info", "mod", "zip")


class _MultiError(Exception):
    """Several failures collected from parallel work."""

    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = errors
        super().__init__(self.__str__())

    def __str__(self) -> str:
        noun = "error" if len(self.errors) == 1 else "errors"
        lines = "".join(f"\t* {err}\n" for err in self.errors)
        return f"{len(self.errors)} {noun} occurred:\n{lines}\n"


def package_versioned_name(module: str, version: str, ext: str) -> str:
    """Blob path of one file of a module version."""
    return f"{module}/@v/{version}.{ext}"


def module_version_from_path(path: str) -> tuple[str, str]:
    """Split a blob path of an .info file into module and version; empty on mismatch."""
    segments = path.split("/@v/")
    if len(segments) != 2:
        return "", ""
    module, rest = segments
    return module, rest.removesuffix(".info")


def _run_all(
    action: str,
    module: str,
    version: str,
    jobs: list[tuple[str, Callable[[], None]]],
    timeout: float,
) -> list[BaseException]:
    deadline = time.monotonic() + timeout
    results: queue.Queue[tuple[str, BaseException | None]] = queue.Queue()

    def run(ext: str, job: Callable[[], None]) -> None:
        try:
            job()
        except Exception as err:
            results.put((ext, err))
        else:
            results.put((ext, None))

    for ext, job in jobs:
        threading.Thread(target=run, args=(ext, job), daemon=True).start()

    pending = [ext for ext, _ in jobs]
    errors: list[BaseException] = []
    while pending:
        remaining = max(deadline - time.monotonic(), 0)
        try:
            ext, err = results.get(timeout=remaining)
        except queue.Empty:
            break
        pending.remove(ext)
        if err is not None:
            errors.append(err)
    errors.extend(
        TimeoutError(f"{action} {module}.{version}.{ext} failed: context deadline exceeded")
        for ext in pending
    )
    return errors


def upload(
    module: str,
    version: str,
    info: BinaryIO,
    mod: BinaryIO,
    zip: BinaryIO,
    uploader: Uploader,
    timeout: float,
) -> None:
    """Upload the .info, .mod and .zip files in parallel within ``timeout`` seconds.

    Raises StorageError carrying every upload failure and timeout.
    """
    streams = {
        "info": ("application/json", info),
        "mod": ("text/plain", mod),
        "zip": ("application/octet-stream", zip),
    }

    def job(ext: str) -> Callable[[], None]:
        content_type, stream = streams[ext]
        path = package_versioned_name(module, version, ext)
        return lambda: uploader(path, content_type, stream)

    errors = _run_all("uploading", module, version, [(ext, job(ext)) for ext in _FILES], timeout)
    if errors:
        failure = _MultiError(errors)
        raise StorageError("module.Upload", cause=failure) from failure


def delete(module: str, version: str, deleter: Deleter, timeout: float) -> None:
    """Delete the .info, .mod and .zip files in parallel within ``timeout`` seconds.

    Raises StorageError carrying every deletion failure and timeout.
    """

    def job(ext: str) -> Callable[[], None]:
        path = package_versioned_name(module, version, ext)
        return lambda: deleter(path)

    errors = _run_all("deleting", module, version, [(ext, job(ext)) for ext in _FILES], timeout)
    if errors:
        failure = _MultiError(errors)
        raise StorageError("module.Delete", cause=failure) from failure