# modstore

Storage backends for a Go module proxy. Each backend keeps three files for
every module version, the ones a proxy serves: the `.info` metadata, the
`go.mod` file and the source `.zip`.

## Backends

- `modstore.fs.FileSystemStorage(root_dir)` keeps everything under a root
  directory, with one directory per module version
  (`<root>/<module>/<version>/`). The root directory must already exist.
  `modstore.fs.new_storage(root_dir)` builds one.
- `modstore.mem.MemoryStorage()` uses the same layout but keeps it in this
  process's memory. It is handy for tests and short-lived proxies.
  `modstore.mem.new_storage()` builds one.

Both backends offer `list`, `info`, `go_mod`, `zip`, `save`, `delete`,
`exists`, `catalog` and `clear`. Asking for a module version that is not
stored raises `modstore.backend.StorageError` whose `kind` is
`Kind.NOT_FOUND`. `list` returns only directory names that are valid
semantic versions, and returns an empty list for an unknown module.

```python
import io

from modstore.mem import MemoryStorage

storage = MemoryStorage()
storage.save(
    "example.com/hello",
    "v1.0.0",
    b"module example.com/hello\n",
    io.BytesIO(b"zip bytes"),
    b'{"Version":"v1.0.0"}',
)

storage.list("example.com/hello")          # ["v1.0.0"]
storage.go_mod("example.com/hello", "v1.0.0")
with storage.zip("example.com/hello", "v1.0.0") as reader:
    data = reader.read()
    size = reader.size
```

`catalog(token, page_size)` pages through every stored module version. It
returns a list of `AllPathParams(module, version)` together with the token
for the next page. The token is empty when there is nothing more. A malformed
token raises `StorageError` with `Kind.BAD_REQUEST`.

`modstore.backend.Backend` is the abstract base class for new backends. For a
backend that has no `exists` method of its own,
`modstore.backend.with_checker(backend)` returns an `ExistenceChecker`. The
checker treats a version as present when its `.info` can be read.

## Records

`modstore.models` holds plain data types:

- `Module` is a stored module record.
- `Version` holds the mod, zip stream and info of one version.
- `Origin` and `RevInfo` describe the `.info` document. `RevInfo.to_json` and
  `RevInfo.from_json` convert it to and from JSON.

## Blob stores

`modstore.blobio.upload(module, version, info, mod, zip, uploader, timeout)`
and `modstore.blobio.delete(module, version, deleter, timeout)` write or
remove the three files of a module version. They run in parallel through a
callable you provide and must finish within `timeout` seconds.

- The uploader is called as `uploader(path, content_type, stream)`.
- The deleter is called as `deleter(path)`.
- Every failure and every timeout is reported together in one `StorageError`.

`package_versioned_name(module, version, ext)` gives the blob path used for
each file (`<module>/@v/<version>.<ext>`). `module_version_from_path` splits
such a path back into module and version.

## Checking a backend

`modstore.compliance.run_tests(backend, clear)` runs the shared behaviour
checks against any backend. It raises `ComplianceFailure` on the first
mismatch. `clear` is called before and after the checks.

`run_benchmarks(backend, clear, rounds=100)` times listing, saving, deleting
and existence checks. It returns the elapsed seconds for each operation.

```python
from modstore.compliance import run_tests
from modstore.mem import MemoryStorage

storage = MemoryStorage()
run_tests(storage, storage.clear)
```

## Liveness probe

`modstore-probe` polls the proxy named by the `GOPROXY` environment variable
once a second until the proxy answers with HTTP 200. It gives up after a
minute with exit status 1.

```
GOPROXY=http://localhost:3000 modstore-probe
```

The same logic is available as `modstore.probe.probe(url, timeout)` and
`modstore.probe.wait_until_live(url, deadline, interval)`.

## What is not included

The package stores modules only on the local file system or in memory. It
has no database-backed or cloud object-store backend. The `blobio` helpers
leave the actual blob client to you. It is not a proxy server either: it
provides the storage a proxy would use, not the HTTP endpoints that serve it.

## Installing

```
pip install modstore
```

The package has no runtime dependencies. Tests need the `test` extra
(`pip install modstore[test]`).