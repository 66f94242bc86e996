import logging
import random
import re
import time
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Union

import duckdb
import pandas as pd

logger = logging.getLogger(__name__)

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DatabaseConnectionManager:
    """
    Opens DuckDB connections, retrying while another process holds the file lock.
    """

    def __init__(self, max_retries: int = 3):
        self.max_retries = max_retries

    def get_connection(self, db_path: str, read_only: bool = False) -> duckdb.DuckDBPyConnection:
        """
        Open a connection, backing off exponentially on lock conflicts.

        Args:
            db_path: DuckDB file, or ":memory:"
            read_only: Open read-only; ignored for files that do not exist yet

        Returns:
            DuckDB connection
        """
        for attempt in range(self.max_retries):
            try:
                if read_only and db_path != ":memory:" and Path(db_path).exists():
                    conn = duckdb.connect(db_path, read_only=True)
                    logger.debug(f"Opened read-only connection to {db_path}")
                else:
                    conn = duckdb.connect(db_path)
                    logger.debug(f"Opened read-write connection to {db_path}")
                return conn

            except duckdb.IOException as e:
                if "Conflicting lock" in str(e) and attempt < self.max_retries - 1:
                    wait_time = (2**attempt) + random.uniform(0, 1)  # nosec B311
                    logger.warning(
                        f"Database locked, retrying in {wait_time:.2f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(wait_time)
                    continue
                logger.error(f"Failed to connect to {db_path} after {attempt + 1} attempts: {e}")
                raise

        raise duckdb.IOException(f"Could not connect to {db_path} after {self.max_retries} attempts")

    @contextmanager
    def temporary_connection(self, db_path: str, read_only: bool = True):
        """Connection that is closed when the block exits."""
        conn = self.get_connection(db_path, read_only)
        try:
            yield conn
        finally:
            conn.close()
            logger.debug(f"Closed temporary connection to {db_path}")


_connection_manager = DatabaseConnectionManager()


class ResultsDatabase:
    """
    Stores analysis tables (spectra, matrices, party lists) in DuckDB.
    """

    def __init__(self, db_path: Union[str, Path, None] = None, read_only: bool = False):
        """
        Args:
            db_path: DuckDB file; None for an in-memory database
            read_only: Open an existing file read-only
        """
        self.db_path = str(db_path) if db_path is not None else ":memory:"
        self.read_only = read_only
        self._conn = None

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Connection opened on first use."""
        if self._conn is None:
            self._conn = _connection_manager.get_connection(self.db_path, self.read_only)
        return self._conn

    def save_frame(self, table: str, frame: pd.DataFrame, replace: bool = True) -> int:
        """
        Write a DataFrame to a table.

        Args:
            table: Table name; letters, digits and underscores only
            frame: Rows to write
            replace: Drop any existing table first, otherwise append

        Returns:
            Number of rows written
        """
        if not _TABLE_NAME.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        if self.read_only:
            raise PermissionError(f"{self.db_path} was opened read-only")

        self.conn.register("_frame", frame)
        try:
            if replace or not self.table_exists(table):
                self.conn.execute(f"CREATE OR REPLACE TABLE {table} AS SELECT * FROM _frame")
            else:
                self.conn.execute(f"INSERT INTO {table} SELECT * FROM _frame")
        finally:
            self.conn.unregister("_frame")

        logger.info(f"Saved {len(frame)} rows to {table}")
        return len(frame)

    def query(self, sql: str, params: Optional[List] = None) -> pd.DataFrame:
        """Run a query and return the result as a DataFrame."""
        try:
            if params:
                return self.conn.execute(sql, params).fetchdf()
            return self.conn.execute(sql).fetchdf()
        except duckdb.Error as e:
            logger.error(f"Query failed: {e}")
            raise

    def table_exists(self, table: str) -> bool:
        sql = "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?"
        return self.conn.execute(sql, [table]).fetchone()[0] > 0

    def tables(self) -> List[str]:
        rows = self.conn.execute(
            "SELECT table_name FROM information_schema.tables ORDER BY table_name"
        ).fetchall()
        return [row[0] for row in rows]

    def close(self):
        """Close the connection if one is open."""
        if self._conn is not None:
            try:
                self._conn.close()
                logger.debug(f"Closed database connection to {self.db_path}")
            finally:
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
