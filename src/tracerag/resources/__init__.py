"""Packaged resources: the markdown corpus and the read-only document snapshot.

The snapshot (trace-documents.db) is not checked in. Build it from the
corpus with tracerag-refresh and copy the resulting database here, or set
TRACE_SNAPSHOT_PATH to its location. Until then retrieval has no documents
to serve.
"""
