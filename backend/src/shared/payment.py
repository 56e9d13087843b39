"""
Payment Calculator - daily base pay plus accuracy-tiered quality bonus.

Base pay is all-or-nothing: a worker below the daily task target earns no
base pay and therefore no bonus, whatever their accuracy.
"""
from decimal import Decimal, ROUND_DOWN
from typing import List, Optional

from shared.config import config
from shared.models import BonusSource

# Accuracy scores are rounded to two decimals before the tier lookup
ACCURACY_RESOLUTION = Decimal('0.01')


def find_payment_tier(accuracy_score: float, tiers: Optional[List[dict]] = None) -> dict:
    """
    Find the first tier whose [minAccuracy, maxAccuracy] range (inclusive)
    contains the score. Falls back to the lowest band (the 0% tier in the
    default configuration) when nothing matches, e.g. 89.5 falls between
    the integer bands [80, 89] and [90, 100].
    """
    if tiers is None:
        tiers = config.PAYMENT_TIERS

    for tier in tiers:
        if tier['minAccuracy'] <= accuracy_score <= tier['maxAccuracy']:
            return tier
    return min(tiers, key=lambda t: t['minAccuracy'])


def calculate_quality_bonus(base_pay: Decimal, tier: dict, bonus_source: str) -> Decimal:
    """
    Bonus for a tier. Paid only when base pay was earned.

    BonusSource.FIXED_AMOUNT pays the tier's bonusAmount as-is;
    BonusSource.PERCENTAGE pays bonusPercentage of base pay, rounded down to cents.
    """
    if base_pay <= 0:
        return Decimal('0')

    if bonus_source == BonusSource.PERCENTAGE:
        percentage = Decimal(str(tier['bonusPercentage']))
        return (base_pay * percentage / Decimal('100')).quantize(Decimal('0.01'), rounding=ROUND_DOWN)

    return Decimal(str(tier['bonusAmount']))


def calculate_payment(
    tasks_completed: int,
    accuracy_score: float,
    daily_task_target: Optional[int] = None,
    base_pay_amount: Optional[Decimal] = None,
    tiers: Optional[List[dict]] = None,
    bonus_source: Optional[str] = None
) -> dict:
    """
    Calculate a worker's pay for one day.

    Preconditions (not checked): tasks_completed >= 0 and 0 <= accuracy_score <= 100.

    Args:
        tasks_completed: Responses submitted in the reporting day
        accuracy_score: Percentage of validated answers matching ground truth
        daily_task_target: Quota that unlocks base pay (default from config)
        base_pay_amount: Base pay once the quota is met (default from config)
        tiers: Ordered tier list (default from config)
        bonus_source: BonusSource constant (default from config)

    Returns:
        dict with tasksCompleted, accuracyScore, basePay, qualityBonus,
        totalPay (Decimals) and the matched tier
    """
    if daily_task_target is None:
        daily_task_target = config.DAILY_TASK_TARGET
    if base_pay_amount is None:
        base_pay_amount = config.BASE_PAY_AMOUNT
    if tiers is None:
        tiers = config.PAYMENT_TIERS
    if bonus_source is None:
        bonus_source = config.BONUS_SOURCE

    base_pay = Decimal(str(base_pay_amount)) if tasks_completed >= daily_task_target else Decimal('0')
    tier = find_payment_tier(accuracy_score, tiers)
    quality_bonus = calculate_quality_bonus(base_pay, tier, bonus_source)

    return {
        'tasksCompleted': tasks_completed,
        'accuracyScore': accuracy_score,
        'basePay': base_pay,
        'qualityBonus': quality_bonus,
        'totalPay': base_pay + quality_bonus,
        'tier': tier
    }


def validate_payment_tiers(tiers: List[dict], strict: bool = False) -> None:
    """
    Check a tier configuration before it is used.

    Bands must not overlap and together must reach down to 0 and up to 100.
    Space between bands is allowed by default: with the default integer bands
    a score of 89.5 lies between [80, 89] and [90, 100] and falls back to the
    lowest band. With strict=True, bands may be at most ACCURACY_RESOLUTION
    apart (e.g. [80, 89.99] and [90, 100]), so every rounded score has a band.

    Raises:
        ValueError: if the list is empty, a field is missing, a band is inverted,
            a bonus is negative, bands overlap, the range 0 to 100 is not reached,
            or (strict) two bands leave a gap.
    """
    if not tiers:
        raise ValueError("At least one payment tier is required")

    for tier in tiers:
        for field in ('minAccuracy', 'maxAccuracy', 'bonusPercentage', 'bonusAmount'):
            if field not in tier:
                raise ValueError(f"Payment tier {tier} is missing '{field}'")
        if tier['minAccuracy'] > tier['maxAccuracy']:
            raise ValueError(
                f"Payment tier has minAccuracy {tier['minAccuracy']} above maxAccuracy {tier['maxAccuracy']}"
            )
        if tier['bonusAmount'] < 0 or tier['bonusPercentage'] < 0:
            raise ValueError(f"Payment tier {tier} has a negative bonus")

    bands = sorted(tiers, key=lambda t: t['minAccuracy'])
    for lower, upper in zip(bands, bands[1:]):
        if upper['minAccuracy'] <= lower['maxAccuracy']:
            raise ValueError(
                f"Payment tiers overlap: [{lower['minAccuracy']}, {lower['maxAccuracy']}] "
                f"and [{upper['minAccuracy']}, {upper['maxAccuracy']}]"
            )

    if bands[0]['minAccuracy'] > 0 or bands[-1]['maxAccuracy'] < 100:
        raise ValueError("Payment tiers must cover accuracy scores from 0 to 100")

    if strict:
        for lower, upper in zip(bands, bands[1:]):
            gap = Decimal(str(upper['minAccuracy'])) - Decimal(str(lower['maxAccuracy']))
            if gap > ACCURACY_RESOLUTION:
                raise ValueError(
                    f"Payment tiers leave a gap between {lower['maxAccuracy']} and {upper['minAccuracy']}"
                )
