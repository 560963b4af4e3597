"""Shared fixtures: a fresh catalog database per test."""

import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from src.core.db import init_db


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "catalog.db"


@pytest.fixture()
def db(db_path: Path) -> Iterator[sqlite3.Connection]:
    conn = init_db(db_path)
    yield conn
    conn.close()
