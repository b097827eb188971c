"""Fee and completion estimate policy."""

from decimal import Decimal

import pytest

from mixer.models import PrivacyLevel, PrivacySettings
from mixer.services.fee_service import (
    DEFAULT_FEE_RATE,
    calculate_fee,
    estimate_completion_seconds,
    get_fee_rate,
)


@pytest.mark.parametrize(
    ("level", "fee", "net"),
    [
        (PrivacyLevel.LOW, Decimal("5"), Decimal("995")),
        (PrivacyLevel.MEDIUM, Decimal("8"), Decimal("992")),
        (PrivacyLevel.HIGH, Decimal("12"), Decimal("988")),
    ],
)
def test_fee_by_privacy_level(level, fee, net):
    assert calculate_fee(Decimal("1000"), level) == (fee, net)


def test_fee_is_floored():
    fee, net = calculate_fee(Decimal("1999"), PrivacyLevel.HIGH)
    # 1999 * 0.012 = 23.988
    assert fee == Decimal("23")
    assert net == Decimal("1976")


def test_small_amount_pays_no_fee():
    fee, net = calculate_fee(Decimal("99.99"), PrivacyLevel.MEDIUM)
    assert fee == 0
    assert net == Decimal("99.99")


def test_unknown_level_uses_default_rate():
    assert get_fee_rate("ultra") == DEFAULT_FEE_RATE
    assert get_fee_rate(None) == DEFAULT_FEE_RATE
    assert get_fee_rate("high") == Decimal("0.012")


@pytest.mark.parametrize(
    ("level", "delay_hours", "expected"),
    [
        ("low", 0, 300),
        ("medium", 0, 360),
        ("high", 0, 450),
        ("high", 2, 11250),
        ("low", 0.5, 2100),
        ("medium", 1.1, 5112),
    ],
)
def test_completion_estimate(level, delay_hours, expected):
    privacy = PrivacySettings(privacy_level=level, delay_hours=delay_hours)
    assert estimate_completion_seconds(privacy) == expected
