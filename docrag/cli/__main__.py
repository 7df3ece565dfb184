"""Allow ``python -m docrag.cli`` execution."""

from docrag.cli.ingest import main

main()
