#!filepath: tests/conftest.py
from __future__ import annotations

import os
import sqlite3
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import pytest


def pytest_configure(config: pytest.Config) -> None:
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))
    os.environ.setdefault("QUILLPRESS_LOG_TO_FILE", "false")
    os.environ.setdefault("QUILLPRESS_CONSOLE_LEVEL", "WARNING")


@dataclass(frozen=True, slots=True)
class Seed:
    """Users and a publication shared by workflow tests.

    ``owner`` owns ``publication``; ``editor`` is an editor, ``admin`` an
    admin and ``author`` a writer in it. ``stranger`` has no membership.
    """

    owner: int
    editor: int
    admin: int
    author: int
    stranger: int
    publication: int


@pytest.fixture()
def conn() -> Iterator[sqlite3.Connection]:
    from quillpress_app.db.connection import open_connection
    from quillpress_app.db.migrate import init_schema

    c = open_connection(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture()
def app_config():
    from quillpress_app.settings import AppConfig

    return AppConfig()


@pytest.fixture()
def services(conn: sqlite3.Connection, app_config):
    from quillpress_app.workflow.services import build_services

    return build_services(conn, app_config)


@pytest.fixture()
def seed(conn: sqlite3.Connection, services) -> Seed:
    from quillpress_app.db.repos.users_repo import UsersRepo

    users = UsersRepo(conn)
    ids = {
        name: users.insert_user(username=name, email=f"{name}@example.org")
        for name in ("owner", "editor", "admin", "author", "stranger")
    }
    publication = services.publications.create_publication(ids["owner"], "The Quill").unwrap()
    services.publications.add_member(publication.id, ids["editor"], "editor").unwrap()
    services.publications.add_member(publication.id, ids["admin"], "admin").unwrap()
    services.publications.add_member(publication.id, ids["author"], "writer").unwrap()
    return Seed(publication=publication.id, **ids)


@pytest.fixture()
def draft(services, seed: Seed):
    return services.lifecycle.create_article(
        seed.author,
        "A Field Guide to Quiet Mornings",
        {"type": "doc", "content": [{"type": "paragraph", "text": "Coffee first. Then words."}]},
        tags=["habits", "writing"],
    ).unwrap()
