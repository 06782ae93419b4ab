from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
import tempfile
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

_DB_DIR = tempfile.mkdtemp(prefix="docsearch-tests-")

os.environ["SEARCH_DATABASE_URI"] = f"sqlite:///{_DB_DIR}/api.db"
os.environ["SEARCH_VECTOR_INDEX"] = "memory"
os.environ["SEARCH_ALLOW_ANONYMOUS"] = "true"
os.environ["SEARCH_METRICS_ENABLED"] = "true"
os.environ["EMBEDDING_PROVIDER"] = "hash"
os.environ["EMBEDDING_DIMENSION"] = "256"
os.environ["RERANK_PROVIDER"] = "none"
os.environ["SEARCH_TOKEN_ESTIMATOR"] = "heuristic"
os.environ.pop("SEARCH_API_KEYS", None)
os.environ.pop("SEARCH_API_KEY_MAP", None)
os.environ.pop("OPENAI_API_KEY", None)

from docsearch.store.documents import DocumentStore  # noqa: E402


@pytest.fixture
def store(tmp_path: Path) -> DocumentStore:
    return DocumentStore(f"sqlite:///{tmp_path / 'documents.db'}")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
