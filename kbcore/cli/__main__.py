"""Allow ``python -m kbcore.cli`` execution."""

from kbcore.cli.ingest import main

main()
