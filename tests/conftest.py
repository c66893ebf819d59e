# pylint: disable=unused-import
from gevent import config  # isort:skip # noqa

# there were some issues with the 'thread' resolver, remove it from the options
config.resolver = ["dnspython", "ares", "block"]  # noqa

import pytest
import structlog
from structlog.testing import LogCapture

from .fixtures import *  # noqa


@pytest.fixture
def log(monkeypatch) -> LogCapture:
    """Captures structlog events, use `log.has(event, **fields)` to assert on them"""
    capture = CapturedLogs()
    structlog.configure(processors=[capture])
    # CLI commands call `setup_logging`, which would replace the capturing processor
    monkeypatch.setattr("nitrolite_libs.cli.setup_logging", lambda **_kwargs: None)
    yield capture
    structlog.reset_defaults()


class CapturedLogs(LogCapture):
    def has(self, event: str, **fields) -> bool:
        for entry in self.entries:
            if entry.get("event") != event:
                continue
            if all(entry.get(key) == value for key, value in fields.items()):
                return True
        return False
