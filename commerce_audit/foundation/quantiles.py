"""Quantile (NTILE-equivalent) bucket scoring.

Assigns ordinal scores 1..k to a ranked population so that bucket sizes
differ by at most one, reproducing SQL ``NTILE(k) OVER (ORDER BY ...)``.
"""

from __future__ import annotations

from collections import Counter
from typing import Hashable, Mapping, Sequence

import numpy as np

DEFAULT_BUCKET_COUNT = 5


def ntile(
    population: Sequence[tuple[Hashable, object]],
    bucket_count: int = DEFAULT_BUCKET_COUNT,
    descending: bool = False,
) -> dict[Hashable, int]:
    """Score a population into ``bucket_count`` near-equal ranked buckets.

    The population is sorted by value in the requested direction and rank
    positions are partitioned as NTILE does: with ``q, r = divmod(n, k)``
    the first ``r`` buckets receive ``q + 1`` members and the remaining
    buckets ``q``. Bucket ``k`` therefore always holds the last values in
    sort order.

    **Ties**: the sort is stable, so entities with equal values keep their
    input order. SQL leaves tie order undefined; this fixes it for
    repeatable runs.

    Parameters
    ----------
    population:
        ``(entity_id, sort_value)`` pairs. Entity ids should be unique;
        a repeated id keeps the score of its last occurrence.
    bucket_count:
        Number of buckets (``k``). Must satisfy ``1 <= k <= n``.
    descending:
        Sort values descending (e.g. recency, where the smallest number of
        days should receive the highest score).

    Returns
    -------
    dict
        Mapping of entity_id to score in ``[1, bucket_count]``. Empty when
        the population is empty.

    Raises
    ------
    ValueError
        If ``bucket_count`` is below 1 or exceeds the population size.

    Examples
    --------
    >>> ntile([("a", 10), ("b", 30), ("c", 20)], bucket_count=3)
    {'a': 1, 'c': 2, 'b': 3}
    >>> sorted(ntile([(i, i) for i in range(7)], bucket_count=5).values())
    [1, 1, 2, 2, 3, 4, 5]
    """
    n = len(population)
    if n == 0:
        return {}
    if bucket_count < 1:
        raise ValueError(f"bucket_count must be >= 1, got {bucket_count}")
    if bucket_count > n:
        raise ValueError(
            f"bucket_count ({bucket_count}) cannot exceed population size ({n})"
        )

    # sorted() keeps equal elements in input order, also with reverse=True
    order = sorted(range(n), key=lambda i: population[i][1], reverse=descending)

    base, extra = divmod(n, bucket_count)
    sizes = np.full(bucket_count, base, dtype=np.int64)
    sizes[:extra] += 1
    upper_bounds = np.cumsum(sizes)
    scores = np.searchsorted(upper_bounds, np.arange(n), side="right") + 1

    return {
        population[index][0]: int(score) for index, score in zip(order, scores)
    }


def bucket_sizes(scores: Mapping[Hashable, int]) -> dict[int, int]:
    """Return the number of entities per score, ordered by score."""
    counts = Counter(scores.values())
    return {score: counts[score] for score in sorted(counts)}
