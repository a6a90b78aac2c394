from discord_bot import GOODBYE_TEXT, HELP_TEXT, UNKNOWN_TEXT, WELCOME_TEXT, handle_command
from rss_relay.subscribers import SubscriberStore


def test_start_and_stop(tmp_path):
    """!start subscribes the channel, !stop removes it"""
    store = SubscriberStore(tmp_path)

    assert handle_command("!start", 5, store) == WELCOME_TEXT
    assert store.snapshot() == {5}

    assert handle_command("!stop", 5, store) == GOODBYE_TEXT
    assert store.snapshot() == set()


def test_help_and_unknown(tmp_path):
    """Help text and a hint for unknown commands"""
    store = SubscriberStore(tmp_path)
    assert handle_command("!help", 5, store) == HELP_TEXT
    assert handle_command("!HELP extra args", 5, store) == HELP_TEXT
    assert handle_command("!news", 5, store) == UNKNOWN_TEXT


def test_plain_messages_are_ignored(tmp_path):
    """Messages without the prefix are not commands"""
    store = SubscriberStore(tmp_path)
    assert handle_command("hello !start", 5, store) is None
    assert store.snapshot() == set()
