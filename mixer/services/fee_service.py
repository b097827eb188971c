"""Fee Service - Fee rates and completion estimates per privacy level."""

from decimal import ROUND_FLOOR, Decimal

from mixer.models.transaction import PrivacyLevel, PrivacySettings

# Fee rate by privacy level
FEE_RATES: dict[PrivacyLevel, Decimal] = {
    PrivacyLevel.LOW: Decimal("0.005"),
    PrivacyLevel.MEDIUM: Decimal("0.008"),
    PrivacyLevel.HIGH: Decimal("0.012"),
}
DEFAULT_FEE_RATE = Decimal("0.008")

# Completion estimate: (base + delay) * multiplier, in seconds
BASE_COMPLETION_SECONDS = 300
ETA_MULTIPLIERS: dict[PrivacyLevel, Decimal] = {
    PrivacyLevel.LOW: Decimal("1.0"),
    PrivacyLevel.MEDIUM: Decimal("1.2"),
    PrivacyLevel.HIGH: Decimal("1.5"),
}


def get_fee_rate(privacy_level: PrivacyLevel | str | None) -> Decimal:
    """Fee rate for a privacy level; unknown levels get the default rate."""
    try:
        return FEE_RATES[PrivacyLevel(privacy_level)]
    except ValueError:
        return DEFAULT_FEE_RATE


def calculate_fee(
    amount: Decimal, privacy_level: PrivacyLevel | str | None
) -> tuple[Decimal, Decimal]:
    """Calculate the mixing fee.

    fee = floor(amount * rate), net = amount - fee

    Args:
        amount: Gross deposit amount
        privacy_level: Selected privacy level

    Returns:
        Tuple of (fee, net_amount)
    """
    fee = (amount * get_fee_rate(privacy_level)).to_integral_value(rounding=ROUND_FLOOR)
    return fee, amount - fee


def estimate_completion_seconds(privacy: PrivacySettings) -> int:
    """Estimated seconds until completion for the given privacy settings."""
    multiplier = ETA_MULTIPLIERS.get(privacy.privacy_level, Decimal("1.0"))
    delay = Decimal(str(privacy.delay_hours)) * 3600
    seconds = (BASE_COMPLETION_SECONDS + delay) * multiplier
    return int(seconds.to_integral_value(rounding=ROUND_FLOOR))
