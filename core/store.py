from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from core.data import Dataset, Observation


logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS product_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id TEXT NOT NULL,
    product_name TEXT NOT NULL,
    period INTEGER NOT NULL,
    inventory REAL NOT NULL,
    procurement_amount REAL NOT NULL,
    sales_amount REAL NOT NULL,
    uploaded_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_product_data_name_period ON product_data (product_name, period);
"""


class ProductStore:
    """Durable copy of the latest uploaded dataset, one row per observation."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def db_conn(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_tables(self) -> None:
        with closing(self.db_conn()) as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    def replace_dataset(self, dataset: Dataset) -> int:
        """Swap the stored rows for ``dataset`` in a single transaction."""
        self.init_tables()
        uploaded_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        rows = [
            (o.product_id, o.product_name, o.period, o.inventory, o.procurement_amount, o.sales_amount, uploaded_at)
            for o in dataset
        ]
        with closing(self.db_conn()) as conn:
            with conn:
                conn.execute("DELETE FROM product_data")
                conn.executemany(
                    """
                    INSERT INTO product_data
                        (product_id, product_name, period, inventory, procurement_amount, sales_amount, uploaded_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        logger.info("Stored %d observations", len(rows))
        return len(rows)

    def load_dataset(self, product: Optional[str] = None) -> Dataset:
        self.init_tables()
        sql = "SELECT product_id, product_name, period, inventory, procurement_amount, sales_amount FROM product_data"
        params: tuple = ()
        if product:
            sql += " WHERE product_name = ? ORDER BY period ASC, id ASC"
            params = (product,)
        else:
            sql += " ORDER BY id ASC"
        with closing(self.db_conn()) as conn:
            fetched = conn.execute(sql, params).fetchall()
        return Dataset(observations=tuple(Observation(**dict(r)) for r in fetched))

    def list_products(self) -> List[str]:
        self.init_tables()
        with closing(self.db_conn()) as conn:
            fetched = conn.execute("SELECT DISTINCT product_name FROM product_data ORDER BY product_name ASC").fetchall()
        return [str(r["product_name"]) for r in fetched]
