"""DuckDB connection wrapper with schema initialization."""

from pathlib import Path

import duckdb


class DuckDBRepo:
    """Manages a DuckDB connection and schema lifecycle.

    Opens a single persistent connection at startup.  Callers obtain
    cursors via ``connection.cursor()`` for concurrent read access.
    The repo is constructed once by the application lifespan (or a test
    fixture) and handed to services explicitly.
    """

    def __init__(self, db_path: str | Path) -> None:
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.connection: duckdb.DuckDBPyConnection = duckdb.connect(str(db_path))
        self.connection.execute("PRAGMA threads=4")

    def initialize_schema(self) -> None:
        """Create core tables if they do not already exist.

        Label sequences and metrics are stored as JSON documents since
        labels may be numbers or strings.
        """
        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS datasets (
                id              VARCHAR NOT NULL,
                name            VARCHAR NOT NULL,
                type            VARCHAR NOT NULL,
                data            JSON NOT NULL,
                size            INTEGER DEFAULT 0,
                created_at      TIMESTAMP DEFAULT current_timestamp
            )
        """)

        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS test_runs (
                id              VARCHAR NOT NULL,
                name            VARCHAR NOT NULL,
                model_type      VARCHAR NOT NULL,
                model_config    JSON,
                dataset_name    VARCHAR NOT NULL,
                dataset_type    VARCHAR NOT NULL,
                status          VARCHAR DEFAULT 'pending',
                error           VARCHAR,
                created_at      TIMESTAMP DEFAULT current_timestamp,
                completed_at    TIMESTAMP
            )
        """)

        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS test_results (
                id              VARCHAR NOT NULL,
                test_run_id     VARCHAR NOT NULL,
                predictions     JSON NOT NULL,
                ground_truth    JSON NOT NULL,
                metrics         JSON NOT NULL,
                confusion_matrix JSON NOT NULL,
                created_at      TIMESTAMP DEFAULT current_timestamp
            )
        """)

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self.connection.close()
