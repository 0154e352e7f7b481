"""Tests for token status derivation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from axmtoken.lifecycle import derive_status, is_expiring, select_expiring
from axmtoken.models import TokenStatus

NOW = datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)


class TestDeriveStatus:
    def test_active(self) -> None:
        assert derive_status(True, True, NOW + timedelta(hours=1), NOW) is TokenStatus.ACTIVE

    def test_expired(self) -> None:
        assert derive_status(True, True, NOW - timedelta(seconds=1), NOW) is TokenStatus.EXPIRED

    def test_expiry_equal_to_now_is_expired(self) -> None:
        assert derive_status(True, True, NOW, NOW) is TokenStatus.EXPIRED

    def test_no_access_token(self) -> None:
        status = derive_status(True, False, NOW + timedelta(hours=1), NOW)
        assert status is TokenStatus.NOT_CONFIGURED

    def test_no_private_key(self) -> None:
        assert derive_status(False, True, None, NOW) is TokenStatus.NOT_CONFIGURED

    def test_token_without_expiry_is_expired(self) -> None:
        assert derive_status(True, True, None, NOW) is TokenStatus.EXPIRED

    def test_expiring_within_threshold(self) -> None:
        status = derive_status(True, True, NOW + timedelta(minutes=10), NOW)
        assert status is TokenStatus.EXPIRING

    def test_custom_threshold(self) -> None:
        expiry = NOW + timedelta(minutes=10)
        assert derive_status(True, True, expiry, NOW, timedelta(minutes=5)) is TokenStatus.ACTIVE

    def test_naive_expiry_treated_as_utc(self) -> None:
        naive = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert derive_status(True, True, naive, NOW) is TokenStatus.ACTIVE


class TestExpiringSelection:
    @pytest.mark.parametrize(
        ("offset", "expected"),
        [
            (timedelta(minutes=-1), False),
            (timedelta(0), False),
            (timedelta(seconds=1), True),
            (timedelta(minutes=15), True),
            (timedelta(minutes=15, seconds=1), False),
        ],
    )
    def test_window_bounds(self, offset: timedelta, expected: bool) -> None:
        assert is_expiring(NOW + offset, NOW) is expected

    def test_no_expiry(self) -> None:
        assert is_expiring(None, NOW) is False

    def test_select(self, make_config) -> None:
        soon = make_config(name="soon", token_expiry=NOW + timedelta(minutes=5))
        later = make_config(name="later", token_expiry=NOW + timedelta(hours=2))
        past = make_config(name="past", token_expiry=NOW - timedelta(minutes=5))
        inactive = make_config(
            name="inactive", token_expiry=NOW + timedelta(minutes=5), is_active=False
        )
        assert select_expiring([soon, later, past, inactive], NOW) == [soon]
