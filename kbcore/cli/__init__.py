"""Command-line tools for kbcore.

- ``python -m kbcore.cli chunk FILE`` prints the chunks of a file as JSON.
- ``python -m kbcore.cli ingest FILE...`` ingests files into an in-memory
  knowledge base and optionally runs a filtered search against it.
"""
