"""Document mirror adapters implementing MirrorPort."""

from wardtrack.adapters.mirror.document_mirror import DuckDBDocumentMirror, NullMirror

__all__ = ["DuckDBDocumentMirror", "NullMirror"]
