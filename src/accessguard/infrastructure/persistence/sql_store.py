"""SQLAlchemy-backed tabular store.

Each sheet becomes one table with an autoincrement ``row_number`` primary key
(preserving insertion order) and one TEXT column per header. Cells are stored
as text exactly as the in-memory store holds them.
"""

from pathlib import Path
from typing import Any, Mapping, Sequence

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    inspect,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from accessguard.core.logging import get_logger
from accessguard.infrastructure.persistence.schema import to_cell
from accessguard.infrastructure.persistence.tabular_store import UnknownTableError

logger = get_logger(__name__)

ROW_NUMBER = "row_number"


class SqlTabularStore:
    """TabularStore implementation on a synchronous SQLAlchemy engine.

    Example:
        store = SqlTabularStore("sqlite:///./ag_data/accessguard.db")
        store.open()
        store.ensure_schema("SYS_Roles", ["Role_Id", "Role_Title"])
        store.append_row("SYS_Roles", {"Role_Id": "Admin"})
        store.close()
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        """Initialize the store.

        Args:
            url: SQLAlchemy database URL.
            echo: Whether to echo SQL statements.
        """
        self.url = url
        self.echo = echo
        self._engine: Engine | None = None
        self._metadata = MetaData()
        self._tables: dict[str, Table] = {}

    @property
    def engine(self) -> Engine:
        """Get the engine, failing if the store has not been opened."""
        if self._engine is None:
            raise RuntimeError("Store is not open")
        return self._engine

    def open(self) -> None:
        """Create the engine. Creates the parent directory for SQLite files."""
        if self._engine is not None:
            return

        url = make_url(self.url)
        kwargs: dict[str, Any] = {"echo": self.echo}
        if url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                kwargs["poolclass"] = StaticPool
            else:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        self._engine = create_engine(url, **kwargs)
        logger.info(
            "Store engine created",
            store_url=self._engine.url.render_as_string(hide_password=True),
        )

    def close(self) -> None:
        """Dispose of the engine and all pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._tables.clear()
            self._metadata = MetaData()
            logger.info("Store engine disposed")

    def ensure_schema(self, table: str, headers: Sequence[str]) -> None:
        """Create the table, or ALTER it to add missing header columns."""
        inspector = inspect(self.engine)
        if not inspector.has_table(table):
            sa_table = Table(
                table,
                self._metadata,
                Column(ROW_NUMBER, Integer, primary_key=True, autoincrement=True),
                *[Column(header, Text, nullable=False, default="") for header in headers],
                extend_existing=True,
            )
            sa_table.create(self.engine)
            self._tables[table] = sa_table
            logger.info("Table created", table=table, columns=len(headers))
            return

        existing = {col["name"] for col in inspector.get_columns(table)}
        missing = [h for h in headers if h not in existing]
        if missing:
            with self.engine.begin() as conn:
                for header in missing:
                    conn.execute(
                        text(f"ALTER TABLE \"{table}\" ADD COLUMN \"{header}\" TEXT NOT NULL DEFAULT ''")
                    )
            logger.info("Table columns added", table=table, columns=missing)

        self._tables.pop(table, None)
        if table in self._metadata.tables:
            self._metadata.remove(self._metadata.tables[table])
        self._tables[table] = Table(table, self._metadata, autoload_with=self.engine)

    def list_rows(self, table: str) -> list[dict[str, str]]:
        """Return every row in insertion order, without the row number."""
        sa_table = self._tables.get(table)
        if sa_table is None:
            return []
        stmt = select(sa_table).order_by(sa_table.c[ROW_NUMBER])
        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            return [
                {key: (value if value is not None else "") for key, value in row.items() if key != ROW_NUMBER}
                for row in result.mappings()
            ]

    def append_row(self, table: str, record: Mapping[str, Any]) -> None:
        """Insert one row; unknown keys are ignored."""
        sa_table = self._require(table)
        values = {
            col.name: to_cell(record.get(col.name))
            for col in sa_table.columns
            if col.name != ROW_NUMBER
        }
        with self.engine.begin() as conn:
            conn.execute(insert(sa_table).values(**values))

    def update_row_by_key(
        self, table: str, key_field: str, key_value: str, patch: Mapping[str, Any]
    ) -> bool:
        """Patch the first row (by insertion order) matching the key."""
        sa_table = self._require(table)
        values = {
            key: to_cell(value)
            for key, value in patch.items()
            if key in sa_table.c and key != ROW_NUMBER
        }
        with self.engine.begin() as conn:
            row_number = conn.execute(
                select(sa_table.c[ROW_NUMBER])
                .where(sa_table.c[key_field] == str(key_value))
                .order_by(sa_table.c[ROW_NUMBER])
                .limit(1)
            ).scalar_one_or_none()
            if row_number is None:
                return False
            if values:
                conn.execute(
                    update(sa_table)
                    .where(sa_table.c[ROW_NUMBER] == row_number)
                    .values(**values)
                )
            return True

    def _require(self, table: str) -> Table:
        sa_table = self._tables.get(table)
        if sa_table is None:
            raise UnknownTableError(table)
        return sa_table
