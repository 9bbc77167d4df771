from datetime import datetime, timezone


def period_key(now: datetime | None = None) -> str:
    """
    Return the billing period key ("YYYY-MM") for the given instant.

    Naive datetimes are taken to be UTC already; aware ones are converted, so
    a period never depends on the timezone of the host.

    Args:
        now: The instant to derive the period for, defaults to the current time

    Returns:
        The UTC year and month, e.g. "2024-06"
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}"
