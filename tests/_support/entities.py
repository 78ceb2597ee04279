"""Record types and schema shared by the crudspine test suite."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from crudspine.entity import Entity, slot
from crudspine.registry import register_record


class Customer(Entity):
    id: int | None = None
    name: str | None = None


class OrderLine(Entity):
    id: int | None = None
    order_id: int | None = None
    sku: str | None = None
    qty: int | None = None


class Order(Entity):
    id: int | None = None
    customer_id: int | None = None
    status: str | None = None

    lines: list[OrderLine] | None = slot()
    customer: Any = slot()


class Membership(Entity):
    """Composite primary key."""

    __primary_key__ = ("group_id", "user_id")

    group_id: int | None = None
    user_id: int | None = None
    role: str | None = None


class Product(Entity):
    id: int | None = None
    name: str | None = None
    tags: list[str] | None = None
    attributes: dict[str, Any] | None = None


class ApiKey(Entity):
    id: str | None = None
    owner: str | None = None


class Note(Entity):
    """Stored in a table without a primary key."""

    body: str | None = None


class Invoice(Entity):
    """Mixed-case column names."""

    id: int | None = None
    customerId: int | None = None
    status: str | None = None


@register_record
@dataclass(frozen=True)
class AuditEntry:
    __store__ = "audit_log"

    id: int | None = None
    message: str | None = None


SCHEMA = """
CREATE TABLE customers (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL
);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    customer_id INTEGER,
    status TEXT NOT NULL DEFAULT 'new'
);
CREATE TABLE order_lines (
    id INTEGER PRIMARY KEY,
    order_id INTEGER,
    sku TEXT NOT NULL,
    qty INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE memberships (
    group_id INTEGER NOT NULL,
    user_id INTEGER NOT NULL,
    role TEXT NOT NULL DEFAULT 'member',
    PRIMARY KEY (group_id, user_id)
);
CREATE TABLE products (
    id INTEGER PRIMARY KEY,
    name TEXT,
    tags TEXT,
    attributes TEXT
);
CREATE TABLE api_keys (
    id TEXT PRIMARY KEY,
    owner TEXT
);
CREATE TABLE notes (
    body TEXT
);
CREATE TABLE audit_log (
    id INTEGER PRIMARY KEY,
    message TEXT
);
CREATE TABLE invoices (
    id INTEGER PRIMARY KEY,
    "customerId" INTEGER,
    status TEXT NOT NULL DEFAULT 'draft'
);
"""
