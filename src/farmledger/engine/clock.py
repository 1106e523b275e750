"""Reward Clock - map a time interval to an accrual multiplier.

Three regimes around the bonus cutoff ``bonus_end``:
- interval entirely inside the bonus window: duration * bonus_multiplier
- interval entirely after it: duration
- interval straddling the cutoff: bonus part + normal part

``bonus_end == 0`` means no bonus window was configured.
"""


def multiplier(start: int, end: int, bonus_end: int, bonus_multiplier: int = 1) -> int:
    """
    Compute the accrual weight for the interval ``[start, end)``.

    Args:
        start: Interval start (inclusive)
        end: Interval end (exclusive)
        bonus_end: Timestamp at which the bonus window closes
        bonus_multiplier: Weight applied to each unit of time inside the window

    Returns:
        Accrual weight; 0 for empty or inverted intervals
    """
    if end <= start:
        return 0
    if bonus_multiplier < 1:
        raise ValueError(f"bonus_multiplier must be >= 1, got {bonus_multiplier}")

    if end <= bonus_end:
        return (end - start) * bonus_multiplier
    if start >= bonus_end:
        return end - start
    return (bonus_end - start) * bonus_multiplier + (end - bonus_end)
