"""
Shared pytest fixtures for bracket engine tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - skip the concurrent-writer tests
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket.models import Item


def make_items(*titles):
    """Items with ids derived from their position."""
    return [Item(id=f'item-{i + 1}', title=title) for i, title in enumerate(titles)]


def pick_item_a(match):
    return match.item_a


@pytest.fixture
def four_items():
    return make_items('A', 'B', 'C', 'D')


@pytest.fixture
def three_items():
    return make_items('A', 'B', 'C')


@pytest.fixture
def eight_items():
    return make_items('A', 'B', 'C', 'D', 'E', 'F', 'G', 'H')


@pytest.fixture
def client():
    """Create a test client."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app at an empty temporary data directory."""
    import app as app_module

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    return str(data_dir)
