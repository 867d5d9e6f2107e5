"""Liveness probe that waits for a module proxy to answer."""

from __future__ import annotations

import argparse
import os
import time
import urllib.error
import urllib.request
from http import HTTPStatus


def probe(url: str, timeout: float = 5.0) -> bool:
    """GET ``url`` once; True if it answers 200 OK.

    Transport failures and malformed URLs raise.
    """
    request = urllib.request.Request(url, method="GET")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return response.status == HTTPStatus.OK
    except urllib.error.HTTPError as err:
        err.close()
        return False


def _is_expected(err: BaseException) -> bool:
    if isinstance(err, ConnectionError):
        return True
    return isinstance(err, urllib.error.URLError) and isinstance(err.reason, ConnectionError)


def wait_until_live(url: str, deadline: float = 60.0, interval: float = 1.0) -> bool:
    """Probe ``url`` every ``interval`` seconds until it is live or ``deadline`` passes."""
    end = time.monotonic() + deadline
    while time.monotonic() < end:
        try:
            if probe(url):
                return True
        except (OSError, ValueError) as err:
            if not _is_expected(err):
                print(err)
        time.sleep(interval)
    return False


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="modstore-probe",
        description="Wait up to a minute for the proxy named by GOPROXY to answer.",
    )
    parser.parse_args(argv)
    if wait_until_live(os.environ.get("GOPROXY", "")):
        print("proxy is live")
        return 0
    print("liveness probe timed out")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())