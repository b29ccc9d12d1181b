"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- In-memory TabularStore
- Sample CSV/TSV/SQLite files
- A fake similarity client (more fakes in tests/helpers)
"""

import sqlite3
from collections.abc import Generator
from pathlib import Path

import pytest

from src.store.tabular_store import TabularStore
from tests.helpers import ORIGIN_SCORES, FakeSimilarityClient

PRODUCTS_CSV = """id,name,origin,cocoa_pct,supplier_id
1,Dark Bar,Ecuador,72,1
2,Milk Bar,Peru,35,2
3,Extra Dark,Ecuador,85,2
4,Ruby Bar,Colombia,47,3
5,Intense,Ecuador,90,3
"""

SUPPLIERS_ROWS = [
    (1, "Andes Cacao", "Ecuador"),
    (2, "Costa Beans", "Peru"),
    (3, "Sierra Farms", "Colombia"),
    (4, "Volta Growers", "Ghana"),
]


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )


# ============================================================================
# Store and file fixtures
# ============================================================================


@pytest.fixture
def store() -> Generator[TabularStore, None, None]:
    """Fresh in-memory store."""
    s = TabularStore()
    yield s
    s.close()


@pytest.fixture
def products_csv(tmp_path: Path) -> Path:
    """CSV file with five chocolate products."""
    path = tmp_path / "products.csv"
    path.write_text(PRODUCTS_CSV)
    return path


@pytest.fixture
def products_tsv(tmp_path: Path) -> Path:
    """The products file in tab-separated form."""
    path = tmp_path / "products.tsv"
    path.write_text(PRODUCTS_CSV.replace(",", "\t"))
    return path


@pytest.fixture
def suppliers_db(tmp_path: Path) -> Path:
    """SQLite database with a suppliers table and an empty audit table."""
    path = tmp_path / "suppliers.sqlite3"
    conn = sqlite3.connect(path)
    conn.execute(
        "CREATE TABLE suppliers (supplier_id INTEGER PRIMARY KEY, name TEXT, country VARCHAR(40))"
    )
    conn.executemany("INSERT INTO suppliers VALUES (?, ?, ?)", SUPPLIERS_ROWS)
    conn.execute("CREATE TABLE audit (id INTEGER, note TEXT)")
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def loaded_store(store: TabularStore, products_csv: Path, suppliers_db: Path) -> TabularStore:
    """Store with products and suppliers imported and the catalog built."""
    from src.catalog.metadata import build_catalog
    from src.store.importers import import_files

    import_files(store, [products_csv, suppliers_db])
    build_catalog(store)
    return store


# ============================================================================
# Fake remote clients
# ============================================================================


@pytest.fixture
def similarity_client() -> FakeSimilarityClient:
    """Similarity client that knows how close each origin is to 'Ecuador'."""
    return FakeSimilarityClient(ORIGIN_SCORES)
