"""Shared pytest fixtures for dbx-metadata tests."""

import pytest
from datetime import datetime, timezone

from sqlalchemy import create_engine, text

from dbx_metadata.database.models import (
    Column,
    Database,
    ForeignKey,
    ForeignKeyAction,
    Index,
    IndexColumn,
    IndexType,
    ParameterMode,
    PrimaryKey,
    Procedure,
    ProcedureParameter,
    ProcedureType,
    Schema,
    SortOrder,
    Table,
    Trigger,
    TriggerEvent,
    TriggerTiming,
    View,
)
from dbx_metadata.database.registry import StrategyRegistry
from tests.fixtures import FakeCatalog, column_row


@pytest.fixture
def fake_catalog():
    """An empty catalog reporting an unknown product."""
    return FakeCatalog()


@pytest.fixture
def shop_catalog():
    """A catalog with one user schema holding two tables and a view."""
    catalog = FakeCatalog()
    catalog.add_schema("shop")
    catalog.add_schema("information_schema")

    # Deliberately out of ordinal order
    catalog.add_table("shop", "customers", [
        column_row("email", 3, "VARCHAR", size=255, remarks="Contact address"),
        column_row("id", 1, nullable=False, is_autoincrement="YES"),
        column_row("name", 2, "VARCHAR", nullable=False, size=100),
    ])
    catalog.primary_keys[("shop", "customers")] = [
        {"column_name": "id", "key_seq": 1, "pk_name": "pk_customers"},
    ]

    catalog.add_table("shop", "orders", [
        column_row("id", 1, nullable=False),
        column_row("customer_id", 2, nullable=False),
        column_row("total", 3, "DECIMAL", size=10, decimal_digits=2, column_default="0"),
    ])
    catalog.primary_keys[("shop", "orders")] = [
        {"column_name": "id", "key_seq": 1, "pk_name": "pk_orders"},
    ]
    catalog.imported_keys[("shop", "orders")] = [
        {
            "fk_name": "fk_orders_customer",
            "fkcolumn_name": "customer_id",
            "pkcolumn_name": "id",
            "pktable_schema": "shop",
            "pktable_name": "customers",
            "update_rule": 3,
            "delete_rule": 0,
        },
    ]
    catalog.index_info[("shop", "orders")] = [
        {"index_name": None, "non_unique": False, "type": 0, "column_name": None},
        {
            "index_name": "idx_orders_customer",
            "non_unique": True,
            "type": 3,
            "column_name": "customer_id",
            "asc_or_desc": "A",
            "ordinal_position": 1,
        },
    ]

    catalog.add_view("shop", "active_customers", [
        column_row("id", 1),
        column_row("name", 2, "VARCHAR"),
    ])
    return catalog


@pytest.fixture
def registry():
    """A fresh registry with the built-in strategies."""
    return StrategyRegistry.with_defaults()


SQLITE_DDL = [
    """
    CREATE TABLE customers (
        id INTEGER PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        email VARCHAR(255)
    )
    """,
    """
    CREATE TABLE orders (
        id INTEGER PRIMARY KEY,
        customer_id INTEGER NOT NULL,
        total NUMERIC(10, 2) DEFAULT 0,
        CONSTRAINT fk_orders_customer FOREIGN KEY (customer_id)
            REFERENCES customers (id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX idx_orders_customer ON orders (customer_id)",
    "CREATE UNIQUE INDEX uq_customers_email ON customers (email)",
    "CREATE VIEW big_orders AS SELECT id, total FROM orders WHERE total > 100",
]


@pytest.fixture
def sqlite_url(tmp_path):
    """URL of a small SQLite database with two tables and a view."""
    path = tmp_path / "shop.db"
    url = f"sqlite:///{path}"
    engine = create_engine(url)
    try:
        with engine.begin() as connection:
            for statement in SQLITE_DDL:
                connection.execute(text(statement))
    finally:
        engine.dispose()
    return url


@pytest.fixture
def sample_database():
    """A fully populated metadata tree."""
    customers = Table(
        name="customers",
        columns=[
            Column(name="id", data_type="INTEGER", nullable=False, primary_key=True, auto_increment=True, ordinal_position=1),
            Column(name="name", data_type="VARCHAR", size=100, nullable=False, comment="Full name", ordinal_position=2),
            Column(name="email", data_type="VARCHAR", size=255, ordinal_position=3),
        ],
        primary_key=PrimaryKey(name="pk_customers", columns=["id"]),
        indexes=[
            Index(
                name="idx_customers_email",
                columns=[IndexColumn(name="email", sort_order=SortOrder.ASC, position=1)],
                unique=True,
                type=IndexType.BTREE,
            ),
        ],
        triggers=[
            Trigger(
                name="trg_customers_audit",
                table_name="customers",
                timing=TriggerTiming.AFTER,
                event=TriggerEvent.UPDATE,
                definition="EXECUTE FUNCTION audit()",
            ),
        ],
        comment="Registered customers",
        row_count=42,
    )
    orders = Table(
        name="orders",
        columns=[
            Column(name="id", data_type="INTEGER", nullable=False, primary_key=True, ordinal_position=1),
            Column(name="customer_id", data_type="INTEGER", nullable=False, ordinal_position=2),
        ],
        primary_key=PrimaryKey(name="pk_orders", columns=["id"]),
        foreign_keys=[
            ForeignKey(
                name="fk_orders_customer",
                columns=["customer_id"],
                referenced_schema="public",
                referenced_table="customers",
                referenced_columns=["id"],
                on_delete=ForeignKeyAction.CASCADE,
            ),
        ],
    )
    view = View(
        name="active_customers",
        columns=[Column(name="id", data_type="INTEGER", comment="Customer id", ordinal_position=1)],
        definition="SELECT id FROM customers",
        comment="Customers with orders",
        updatable=True,
    )
    procedure = Procedure(
        name="order_total",
        type=ProcedureType.FUNCTION,
        parameters=[ProcedureParameter(name="order_id", data_type="integer", mode=ParameterMode.IN, position=1)],
        return_type="numeric",
        definition="SELECT 1",
        comment="Sum of order lines",
    )
    return Database(
        product_name="PostgreSQL",
        product_version="16.2",
        driver_name="psycopg2",
        url="postgresql://app@localhost/shop",
        user_name="app",
        schemas=[
            Schema(name="public", tables=[customers, orders], views=[view], procedures=[procedure], owner="app"),
        ],
        warnings=["Permission denied for schema: secret"],
        extracted_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
