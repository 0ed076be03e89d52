# tests/test_login.py
from xovis.broker.login import EXPIRY_MARGIN_S, Login


def test_valid_when_far_from_expiry():
    lg = Login(token="t", valid_for=3600, max_unused_for=3600, received_at=1000, last_used_at=1000)
    assert lg.is_valid(now=1000)


def test_invalid_within_margin_of_issue_expiry():
    lg = Login(token="t", valid_for=600, max_unused_for=3600, received_at=1000, last_used_at=1000)
    assert not lg.is_valid(now=1000 + 600 - EXPIRY_MARGIN_S)
    assert lg.is_valid(now=1000 + 600 - EXPIRY_MARGIN_S - 1)


def test_invalid_when_unused_too_long():
    lg = Login(token="t", valid_for=36000, max_unused_for=300, received_at=1000, last_used_at=1000)
    assert not lg.is_valid(now=1100)


def test_reset_forces_relogin():
    lg = Login(token="t", valid_for=100000, max_unused_for=3600, received_at=1000, last_used_at=2000)
    assert lg.is_valid(now=3500)
    lg.reset()
    assert lg.received_at == 0 and lg.last_used_at == 0
    assert not lg.is_valid(now=3500)


def test_touch_updates_last_used():
    lg = Login()
    lg.touch(now=42)
    assert lg.last_used_at == 42
