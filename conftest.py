import pytest

from talecraft import config


@pytest.fixture(autouse=True)
def clean_test_data(tmp_path):
    """Point runtime config at a fresh data dir before every test."""
    config.init_config(tmp_path / "data")
    yield
