"""Exponential backoff between retries."""


def compute_backoff(attempts: int, base: int) -> int:
    """
    Delay in seconds before a job that has failed `attempts` times is
    eligible again: base ** attempts.

    Args:
        attempts: Failed attempts so far, including the latest one.
        base: Configured backoff base.

    Returns:
        Delay in seconds, 0 when nothing has failed yet.
    """
    if attempts <= 0:
        return 0
    return base**attempts
