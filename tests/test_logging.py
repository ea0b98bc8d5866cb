import logging

import pytest

from qualis.logging import configure_logging


@pytest.fixture()
def root_level():
    root = logging.getLogger()
    previous = root.level
    yield root
    root.setLevel(previous)


class TestConfigureLogging:
    def test_sets_root_level(self, root_level):
        configure_logging("debug")
        assert root_level.level == logging.DEBUG
        configure_logging("warning")
        assert root_level.level == logging.WARNING

    def test_repeat_calls_do_not_add_handlers(self, root_level):
        configure_logging("info")
        count = len(root_level.handlers)
        configure_logging("info")
        assert len(root_level.handlers) == count

    def test_quiets_uvicorn_access(self, root_level):
        configure_logging("info")
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
