"""Shared test fixtures for pwtest-cli tests."""

import os

import pytest


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Drop variables from the developer's shell that change CLI behavior."""
    for name in list(os.environ):
        if name.startswith(("PWTEST_", "PW_TEST_", "PW_TS_ESM", "PW_DISABLE_TS_ESM")):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("PWDEBUG", raising=False)
