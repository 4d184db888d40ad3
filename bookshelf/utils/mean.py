"""
Incremental Mean

Shared by the server-side rating aggregator and the client's optimistic
display, so both compute the same number for the same rating.

    new rating:       avg' = (avg * n + v) / (n + 1)          n' = n + 1
    corrected rating: avg' = (avg * n - old + v) / n          n' = n
"""


def mean_with_new_rating(avg: float, count: int, value: int) -> tuple[float, int]:
    """
    Fold a first-time rating into an average.

    Example:
        >>> mean_with_new_rating(4.0, 2, 2)
        (3.3333333333333335, 3)
    """
    new_count = count + 1
    return (avg * count + value) / new_count, new_count


def mean_with_corrected_rating(
    avg: float, count: int, old_value: int, new_value: int
) -> tuple[float, int]:
    """
    Replace one rater's previous value in an average.

    count is the number of ratings already including old_value, so it is
    at least 1.
    """
    if count < 1:
        raise ValueError("Cannot correct a rating in an empty summary")
    return (avg * count - old_value + new_value) / count, count
