"""An in-memory, block-structured filesystem: block model, namespace and file I/O."""

__version__ = "0.1.0"
__all__ = ["disk", "namespace", "fileio"]