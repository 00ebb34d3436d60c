import logging

import pytest


def pytest_addoption(parser):
    parser.addoption('--runslow', action='store_true', default=False, help='run tests marked slow')


def pytest_configure(config):
    config.addinivalue_line('markers', 'slow: large-grid tests, skipped unless --runslow is given')


def pytest_collection_modifyitems(config, items):
    """Skip tests marked `slow` unless `--runslow` was passed."""
    if config.getoption('--runslow'):
        return
    skip_slow = pytest.mark.skip(reason='needs --runslow')
    for item in items:
        if 'slow' in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The CLI reconfigures the root logger; undo it after every test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
