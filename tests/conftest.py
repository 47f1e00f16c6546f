"""Pytest configuration for unit testing"""
# Standard
import logging
# Installed
import pytest
from aws_cdk import App, Stack
from aws_cdk.assertions import Template
# Local
from tiered_backup.backup import TieredBackupConstruct


@pytest.fixture
def cleanup_loggers():
    """Ensures that root logging handlers are removed after a test"""
    yield
    root = logging.getLogger()
    root.handlers = []


@pytest.fixture(scope='session')
def monkeypatch_session():
    """Provides a monkeypatch that applies for an entire pytest session (saves time)"""
    from _pytest.monkeypatch import MonkeyPatch
    m = MonkeyPatch()
    yield m
    m.undo()


@pytest.fixture(scope='session', autouse=True)
def cdk_environment(monkeypatch_session):
    """Keep synthesis independent of whatever account the developer's shell points at"""
    monkeypatch_session.delenv('CDK_DEFAULT_ACCOUNT', raising=False)
    monkeypatch_session.delenv('CDK_DEFAULT_REGION', raising=False)
    monkeypatch_session.delenv('CDK_CONTEXT_JSON', raising=False)


@pytest.fixture
def cdk_stack():
    """A fresh Stack in a fresh App for a construct under test"""
    app = App()
    return Stack(app, "TestStack")


@pytest.fixture
def synth_backup(cdk_stack):
    """Returns a function that adds a TieredBackupConstruct to a stack and returns (construct, template)"""

    def _synth(environment: str, **kwargs):
        construct = TieredBackupConstruct(cdk_stack, "TieredBackup", environment=environment, **kwargs)
        return construct, Template.from_stack(cdk_stack)

    return _synth
