"""Reciprocal rank fusion of independently ranked result lists."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from file_crawler.core.constants import DENSE_RUN, SPARSE_RUN
from file_crawler.core.models import FusedCandidate, SearchCandidate

DEFAULT_K = 60.0


def reciprocal_rank_fusion(
    runs: Mapping[str, Sequence[SearchCandidate]],
    k_constant: float = DEFAULT_K,
) -> list[FusedCandidate]:
    """Merge ranked lists with RRF.

    Each candidate scores ``sum(1 / (k_constant + rank))`` over the lists it
    appears in. Only ranks are used, so the raw scores of different search modes
    never need to be comparable.

    Args:
        runs: Ranked lists keyed by a run name (e.g. ``"dense"``). Ranks are
            1-indexed; the order of the mapping decides which payload wins.
        k_constant: Smoothing constant; must be positive.

    Returns:
        Candidates ordered by descending fused score, ties broken by ``chunk_id``.
    """
    if k_constant <= 0:
        raise ValueError(f"k_constant must be positive, got {k_constant}")

    fused: dict[str, FusedCandidate] = {}
    for run_name, candidates in runs.items():
        for candidate in candidates:
            entry = fused.get(candidate.chunk_id)
            if entry is None:
                entry = FusedCandidate(
                    chunk_id=candidate.chunk_id,
                    rrf_score=0.0,
                    payload=candidate.payload,
                )
                fused[candidate.chunk_id] = entry
            if run_name in entry.source_ranks:
                continue
            entry.source_ranks[run_name] = candidate.rank
            entry.rrf_score += 1.0 / (k_constant + candidate.rank)

    return sorted(fused.values(), key=lambda c: (-c.rrf_score, c.chunk_id))


def fuse(
    dense_ranked: Sequence[SearchCandidate],
    sparse_ranked: Sequence[SearchCandidate],
    k_constant: float = DEFAULT_K,
) -> list[FusedCandidate]:
    """Fuse the dense and sparse result lists of one query."""
    return reciprocal_rank_fusion(
        {DENSE_RUN: dense_ranked, SPARSE_RUN: sparse_ranked},
        k_constant=k_constant,
    )
