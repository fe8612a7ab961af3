import pytest
from shared.channel import InMemoryEventChannel


class FlakyChannel(InMemoryEventChannel):
    """In-memory channel whose transport can be switched off."""

    def __init__(self, failures=0):
        super().__init__()
        self.failures = failures
        self.down = False
        self.attempts = 0

    def send(self, envelope):
        self.attempts += 1
        if self.down:
            raise ConnectionError("channel unavailable")
        if self.failures:
            self.failures -= 1
            raise ConnectionError("transient channel failure")
        super().send(envelope)


@pytest.fixture()
def flaky_channel():
    return FlakyChannel()


@pytest.fixture()
def flaky_container(flaky_channel, no_sleep):
    from bootstrap import build_container
    from shared.settings import Settings

    sleep, _ = no_sleep
    return build_container(settings=Settings(), channel=flaky_channel, sleep=sleep)


@pytest.fixture()
def make_channel():
    return FlakyChannel
