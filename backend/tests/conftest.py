"""
Shared pytest fixtures.

Environment variables are set here, before any test module imports the
package, so settings pick up a throwaway database, inbox and log file.
"""
import os
import sys
import tempfile

import pytest

# Ensure the package is importable when running pytest from project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

_tmp_dir = tempfile.mkdtemp(prefix="buildconsole-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_tmp_dir, 'app.db')}")
os.environ.setdefault("BACKUP_INBOX", os.path.join(_tmp_dir, "inbox"))
os.environ.setdefault("LOG_FILE", os.path.join(_tmp_dir, "buildconsole.log"))
os.environ.setdefault("WATCHER_ENABLED", "false")
os.environ.setdefault("TENANT_ID", "test-tenant")

from buildconsole.core.database import build_engine, create_db_and_tables  # noqa: E402
from buildconsole.services.console import BusinessConsole  # noqa: E402
from buildconsole.store.sql_store import SqlDocumentStore  # noqa: E402
from buildconsole.sync.journal import WriteJournal  # noqa: E402

TENANT = "test-tenant"


@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(db_engine):
    return SqlDocumentStore(db_engine)


@pytest.fixture
def journal(store):
    return WriteJournal(store, retries=2, backoff=0, synchronous=True)


@pytest.fixture
def console(store, journal):
    c = BusinessConsole(store, journal, TENANT)
    c.start()
    yield c
    c.stop()
