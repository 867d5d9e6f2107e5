"""Storage backends for a Go module proxy: file system and in-memory stores."""

__version__ = "0.1.0"