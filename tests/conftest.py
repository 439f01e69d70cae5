import logging

import pytest

from fake_jira import FakeJira
from jirasync.core.jira_client import JiraClient


@pytest.fixture()
def jira():
    fake = FakeJira().start()
    yield fake
    fake.stop()


@pytest.fixture()
def client(jira):
    # no real waiting on 429 during tests
    return JiraClient(jira.base_url, "me@example.com", "TOKEN", sleep=lambda s: None)


@pytest.fixture(autouse=True)
def _reset_jirasync_logger():
    yield
    base = logging.getLogger("jirasync")
    for h in list(base.handlers):
        base.removeHandler(h)
        h.close()
