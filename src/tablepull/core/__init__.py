"""tablepull core -- errors, data model, SQL text, settings and providers.

Architecture::

    errors.py       Typed error hierarchy (TablepullError and subclasses)
    models.py       ExtractionJob, Shard, KeyResult, TableResult
    sql.py          Identifier validation and query builders
    protocols.py    SourceConnection / ConnectionProvider shapes
    connection.py   SQLAlchemy-backed providers and create_provider()
    secrets.py      Credential lookup for the credentialed provider
    settings.py     TABLEPULL_* environment settings
    logging.py      structlog configuration

Nothing here knows about worker pools; that lives in ``tablepull.extraction``.
"""
