"""Channel adapter registry.

One adapter delivers every notification. The log channel is the default;
``shared.container.build_services`` installs the configured adapter and tests
install ``FakeChannel``.
"""

from notifications.channel.port import NotificationChannelPort

_channel: NotificationChannelPort | None = None


def get_channel() -> NotificationChannelPort:
    """Return the installed channel adapter, creating the log channel on first use."""
    global _channel
    if _channel is None:
        from notifications.channel.log_adapter import LogChannel

        _channel = LogChannel()
    return _channel


def set_channel(adapter: NotificationChannelPort) -> None:
    global _channel
    _channel = adapter


def reset_channel() -> None:
    """Drop the installed adapter (useful for testing)."""
    global _channel
    _channel = None
