"""
Docstore Adapter - benchmark key-value binding over a document store

Exposes insert/read/update/delete/scan over an embedded document engine,
sharing one process-wide connection pool across benchmark worker threads
and bootstrapping the target database exactly once.
"""

__version__ = "0.1.0"
