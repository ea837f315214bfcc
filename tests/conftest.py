# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the zeroterm test suite.
# =============================================================================

from datetime import datetime

import pytest

from zeroterm.core import Account, Message, MessageFlags, MessageStore, Navigator, NavigatorSettings


def make_message(id: str, sender: str, thread_id: str = "", subject: str = "", **kwargs) -> Message:
    """Shorthand for building test messages."""
    return Message(
        id=id,
        sender=sender,
        subject=subject or f"Subject {id}",
        thread_id=thread_id,
        **kwargs,
    )


@pytest.fixture
def temp_dir(tmp_path):
    """A temporary directory for test files."""
    return tmp_path


@pytest.fixture
def sample_account():
    """Create a sample Account for testing."""
    return Account(
        name="test",
        email="test@example.com",
        imap_host="imap.example.com",
        imap_port=993,
        imap_security="ssl",
    )


@pytest.fixture
def sample_message():
    """Create a sample Message for testing."""
    return Message(
        id="12345",
        sender="sender@example.com",
        sender_name="Test Sender",
        subject="Test Subject",
        date=datetime(2024, 1, 15, 10, 30, 0),
        thread_id="t1",
        flags=MessageFlags.NONE,
        message_id="<test123@example.com>",
    )


@pytest.fixture
def scenario_messages():
    """
    The three-message inbox used throughout:
        msg1  a@x.com  T1
        msg2  b@x.com  T1
        msg3  a@x.com  T2
    """
    return [
        make_message("msg1", "a@x.com", "T1"),
        make_message("msg2", "b@x.com", "T1"),
        make_message("msg3", "a@x.com", "T2"),
    ]


@pytest.fixture
def scenario_store(scenario_messages):
    return MessageStore(scenario_messages)


@pytest.fixture
def navigator(scenario_store):
    """Navigator over the scenario inbox with thread protection on."""
    return Navigator(scenario_store, NavigatorSettings(protect_threads=True))


@pytest.fixture
def unprotected_navigator(scenario_store):
    """Navigator over the scenario inbox with thread protection off."""
    return Navigator(scenario_store, NavigatorSettings(protect_threads=False))
