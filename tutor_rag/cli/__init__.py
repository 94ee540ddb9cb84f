"""Command-line tools for tutor_rag.

- ``python -m tutor_rag.cli`` -- ingest course PDFs, search the corpus,
  show statistics and purge sources (see :mod:`tutor_rag.cli.ingest`).
"""
