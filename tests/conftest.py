"""Pytest configuration and fixtures for varbind tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from varbind_cli.document import DocumentTree, load_document
from varbind_cli.models import ReferenceDefinition

from builders import BRAND_ID, BRAND_KEY


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture(autouse=True)
def temp_config_home(temp_dir: Path, monkeypatch) -> Path:
    """Point configuration at a temporary home so tests never touch ~/.varbind."""
    home = temp_dir / "home"
    monkeypatch.setattr("varbind_cli.config.BASE_DIR", home)
    monkeypatch.setattr("varbind_cli.config.CONFIG_FILE", home / "config.toml")
    return home


@pytest.fixture
def sample_document_path() -> Path:
    """Get path to the sample document export."""
    return Path(__file__).parent / "fixtures" / "sample_document.json"


@pytest.fixture
def sample_tree(sample_document_path: Path) -> DocumentTree:
    return load_document(sample_document_path)


@pytest.fixture
def brand() -> ReferenceDefinition:
    return ReferenceDefinition(id=BRAND_ID, key=BRAND_KEY, name="brand/primary", resolved_type="COLOR")
