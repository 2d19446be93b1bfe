from pathlib import Path

import pytest
from hypothesis import settings

PROPERTIES_DIR = Path(__file__).parent

settings.register_profile("readygate", deadline=None)
settings.load_profile("readygate")


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if item.path.is_relative_to(PROPERTIES_DIR):
            item.add_marker(pytest.mark.property)
