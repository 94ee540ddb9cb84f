"""Allow ``python -m tutor_rag.cli`` execution."""

from tutor_rag.cli.ingest import main

main()
