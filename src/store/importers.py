"""File importers for SQLite databases and delimited text files.

Dispatches on file extension:
- .sqlite3, .sqlite, .db, .s3db, .sl3: the database is attached read-only
  through DuckDB's sqlite extension and every table is copied into the store
- .csv / .tsv: loaded with DuckDB's read_csv into a table named after the
  file stem

Failures are reported per file and per table. One failing table never
stops the remaining tables, and one failing file never stops the batch.
"""

import logging
import re
from collections.abc import Iterable
from pathlib import Path

import duckdb

from src.errors.formatter import CocoaGPTError
from src.store.models import ImportReport, TableImport
from src.store.tabular_store import TabularStore, quote_identifier, quote_literal

logger = logging.getLogger(__name__)

SQLITE_EXTENSIONS = (".sqlite3", ".sqlite", ".db", ".s3db", ".sl3")
DELIMITERS = {".csv": ",", ".tsv": "\t"}
SQLITE_ALIAS = "sqlite_upload"
SQLITE_TEXT_ALIAS = "sqlite_upload_text"

_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9_]")


def table_name_for(path: Path) -> str:
    """Derive a table name from a file name.

    Args:
        path: Path to the delimited file.

    Returns:
        File stem with every character outside [A-Za-z0-9_] replaced by '_'.
    """
    return _UNSAFE_NAME_RE.sub("_", path.stem)


def import_file(store: TabularStore, file_path: str | Path) -> ImportReport:
    """Import one file into the store, dispatching on its extension.

    Args:
        store: Target store.
        file_path: Path to a SQLite database or a .csv/.tsv file.

    Returns:
        ImportReport describing every table touched and every failure.
    """
    path = Path(file_path)
    report = ImportReport(file=path.name)
    suffix = path.suffix.lower()

    if suffix not in SQLITE_EXTENSIONS and suffix not in DELIMITERS:
        report.add_error(CocoaGPTError.from_code("E-1001", file=path.name))
        logger.warning("Unknown file type: %s", path.name)
        return report

    if not path.exists():
        report.add_error(CocoaGPTError.from_code("E-1004", file=str(path)))
        return report

    if suffix in SQLITE_EXTENSIONS:
        report.source_type = "sqlite"
        _import_sqlite(store, path, report)
    else:
        report.source_type = "delimited"
        _import_delimited(store, path, DELIMITERS[suffix], report)
    return report


def import_files(store: TabularStore, file_paths: Iterable[str | Path]) -> list[ImportReport]:
    """Import several files, continuing past failures.

    Args:
        store: Target store.
        file_paths: Files to import, in order.

    Returns:
        One ImportReport per file.
    """
    return [import_file(store, p) for p in file_paths]


def _import_sqlite(store: TabularStore, path: Path, report: ImportReport) -> None:
    """Copy every table of a SQLite database into the store.

    The file is attached read-only through DuckDB's sqlite extension and
    detached again once every table has been copied.
    """
    try:
        store.load_extension("sqlite")
        with store.attached(str(path.resolve()), SQLITE_ALIAS, "sqlite") as source:
            tables = [
                row["table_name"]
                for row in store.execute(
                    "SELECT table_name FROM duckdb_tables() "
                    "WHERE database_name = ? AND table_name NOT LIKE 'sqlite_%' "
                    "ORDER BY table_name",
                    [SQLITE_ALIAS],
                )
            ]
            for name in tables:
                report.tables.append(_copy_sqlite_table(store, source, name, path, report))
    except duckdb.Error as e:
        logger.warning("Could not open %s: %s", path.name, e)
        report.add_error(CocoaGPTError.from_code("E-1003", file=path.name, details=str(e)))


def _copy_sqlite_table(
    store: TabularStore,
    source: str,
    name: str,
    path: Path,
    report: ImportReport,
) -> TableImport:
    """Re-create one attached SQLite table in the store.

    SQLite columns are dynamically typed, so a value may not fit the type
    its column declares (text in an INTEGER column, an arbitrary string in
    a UUID column). When the typed copy fails, the table is copied again
    with every offending column kept as VARCHAR.
    """
    if store.has_table(name):
        logger.warning("Table conflict importing %s from %s", name, path.name)
        error = report.add_error(
            CocoaGPTError.from_code(
                "E-1002", table=name, file=path.name, details=f"table {name} already exists"
            )
        )
        return TableImport(table=name, error=error)

    target = quote_identifier(name)
    try:
        try:
            with store.transaction():
                store.execute(f"CREATE TABLE {target} AS SELECT * FROM {source}.{target}")
        except duckdb.Error as e:
            logger.info("Typed copy of %s from %s failed (%s); retrying", name, path.name, e)
            _copy_with_text_columns(store, name, path)
    except duckdb.Error as e:
        logger.warning("Failed to import %s from %s: %s", name, path.name, e)
        error = report.add_error(
            CocoaGPTError.from_code("E-1003", file=f"{path.name}:{name}", details=str(e), table=name)
        )
        return TableImport(table=name, error=error)

    count = store.row_count(name)
    logger.info("Imported %s from %s: %d rows", name, path.name, count)
    return TableImport(table=name, row_count=count)


def _copy_with_text_columns(store: TabularStore, name: str, path: Path) -> None:
    """Copy a table, casting only the columns whose every value converts."""
    declared = [
        (row["column_name"], row["data_type"])
        for row in store.execute(
            "SELECT column_name, data_type FROM duckdb_columns() "
            "WHERE database_name = ? AND table_name = ? ORDER BY column_index",
            [SQLITE_ALIAS, name],
        )
    ]

    store.execute("SET GLOBAL sqlite_all_varchar = true")
    try:
        with store.attached(str(path.resolve()), SQLITE_TEXT_ALIAS, "sqlite") as raw:
            table = f"{raw}.{quote_identifier(name)}"
            checks = ", ".join(
                f"count(*) FILTER (WHERE {quote_identifier(col)} IS NOT NULL "
                f"AND TRY_CAST({quote_identifier(col)} AS {col_type}) IS NULL) AS c{i}"
                for i, (col, col_type) in enumerate(declared)
            )
            failures = list(store.execute(f"SELECT {checks} FROM {table}")[0].values())

            select = []
            for (col, col_type), failed in zip(declared, failures, strict=True):
                quoted = quote_identifier(col)
                if failed:
                    logger.info(
                        "Keeping %s.%s as VARCHAR: %d value(s) are not %s",
                        name, col, failed, col_type,
                    )
                    select.append(quoted)
                else:
                    select.append(f"CAST({quoted} AS {col_type}) AS {quoted}")

            with store.transaction():
                store.execute(
                    f"CREATE TABLE {quote_identifier(name)} AS "
                    f"SELECT {', '.join(select)} FROM {table}"
                )
    finally:
        store.execute("SET GLOBAL sqlite_all_varchar = false")


def _import_delimited(
    store: TabularStore, path: Path, delimiter: str, report: ImportReport
) -> None:
    """Load a CSV/TSV file, creating the table or appending by column name."""
    name = table_name_for(path)
    source = (
        f"read_csv({quote_literal(str(path.resolve()))}, "
        f"delim = {quote_literal(delimiter)}, header = true, "
        f"auto_detect = true, sample_size = -1)"
    )

    try:
        with store.transaction():
            if store.has_table(name):
                before = store.row_count(name)
                store.execute(f"INSERT INTO {quote_identifier(name)} BY NAME SELECT * FROM {source}")
            else:
                before = 0
                store.execute(f"CREATE TABLE {quote_identifier(name)} AS SELECT * FROM {source}")
            inserted = store.row_count(name) - before
    except duckdb.Error as e:
        logger.warning("Failed to import %s: %s", path.name, e)
        error = report.add_error(
            CocoaGPTError.from_code("E-1003", file=path.name, details=str(e), table=name)
        )
        report.tables.append(TableImport(table=name, error=error))
        return

    logger.info("Imported %s into %s: %d rows", path.name, name, inserted)
    report.tables.append(TableImport(table=name, row_count=inserted))
