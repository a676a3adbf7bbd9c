"""Outbound transport interface."""
import pytest

from confessbot.telegram.notifier import Notifier


def test_partial_notifier_cannot_be_created():
    class SendOnly(Notifier):
        async def send(self, target_id, text, keyboard=None) -> bool:
            return True

    with pytest.raises(TypeError):
        SendOnly()
