"""
decoder
=======

Identification of the protein held by a spot from its binary binding vector.

Every candidate protein is scored by the similarity between the observed
vector and the protein's column of the probability matrix (Pearson
correlation by default).  The best-scoring protein is reported, ties going
to the first protein in catalog order.  Confidence compares the winner with
the runner-up under a normal distribution fitted to the spot's own score
vector::

    marginal_confidence = log10(sf(runner_up)) - log10(sf(top))

where ``sf`` is the upper-tail probability of the fitted normal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Literal, Sequence

import numpy as np
from joblib import Parallel, delayed
from scipy.stats import norm

from aptaspot.errors import DegenerateScoreDistributionError, InvalidInputError
from aptaspot.functions import bernoulli_loglik, vectorized_cosine, vectorized_pcc
from aptaspot.sampling import TestSpot

DegenerateMode = Literal["raise", "zero"]
ScoreFunction = Callable[[np.ndarray, np.ndarray], np.ndarray]


@dataclass(frozen=True)
class IdentificationResult:
    """Decoded identity of one spot."""

    true_protein_id: str
    inferred_protein_id: str
    score: float
    marginal_confidence: float

    @property
    def correct(self) -> bool:
        return self.true_protein_id == self.inferred_protein_id


class ScoringRegistry:
    """Registry for candidate scoring metrics using decorator pattern."""

    def __init__(self):
        self._metrics: Dict[str, ScoreFunction] = {}

    def register(self, key: str):
        """Decorator to register a scoring function."""

        def decorator(func):
            self._metrics[key] = func
            logging.debug(f"Registered scoring metric: {key} -> {func.__name__}")
            return func

        return decorator

    def get(self, key: str) -> ScoreFunction:
        """Get scoring function by key."""
        if key not in self._metrics:
            available = sorted(self._metrics)
            raise ValueError(f"Scoring metric '{key}' not found. Available: {available}")
        return self._metrics[key]

    @property
    def available(self) -> List[str]:
        return sorted(self._metrics)


registry = ScoringRegistry()


@registry.register("pearson")
def pearson_scores(observed: np.ndarray, probability_matrix: np.ndarray) -> np.ndarray:
    """Pearson correlation with each protein column."""
    return vectorized_pcc(observed, probability_matrix)


@registry.register("cosine")
def cosine_scores(observed: np.ndarray, probability_matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity with each protein column."""
    return vectorized_cosine(observed, probability_matrix)


@registry.register("loglik")
def loglik_scores(observed: np.ndarray, probability_matrix: np.ndarray) -> np.ndarray:
    """Bernoulli log-likelihood of the observation under each protein column."""
    return bernoulli_loglik(observed, probability_matrix)


def score_candidates(observed: np.ndarray, probability_matrix: np.ndarray, metric: str = "pearson") -> np.ndarray:
    """Score every candidate protein against one observed vector."""
    observed = np.asarray(observed)
    if observed.ndim != 1 or observed.shape[0] != probability_matrix.shape[0]:
        raise InvalidInputError(
            f"Observed vector of shape {observed.shape} does not match {probability_matrix.shape[0]} probe(s)"
        )
    return registry.get(metric)(observed, probability_matrix)


def select_best(scores: np.ndarray) -> int:
    """Index of the maximum score; the first one wins ties."""
    return int(np.argmax(scores))


def marginal_confidence(scores: np.ndarray) -> float:
    """
    Log10 tail-probability ratio between the runner-up and the top score.

    Parameters
    ----------
    scores : np.ndarray
        Score of every candidate protein for one spot.

    Returns
    -------
    float
        ``log10(p2 / p1)`` where ``p1`` and ``p2`` are the upper-tail
        probabilities of the best and second-best scores under a normal
        fitted to ``scores``.

    Raises
    ------
    DegenerateScoreDistributionError
        If the scores have zero variance (which includes a single candidate).
    """
    scores = np.asarray(scores, dtype=np.float64)
    if scores.size < 2 or np.ptp(scores) == 0:
        raise DegenerateScoreDistributionError(f"Score vector of {scores.size} value(s) has zero variance")

    mean, std = norm.fit(scores)
    top_two = np.sort(scores)[-2:]
    log_p2, log_p1 = norm.logsf(top_two, loc=mean, scale=std)
    return float((log_p2 - log_p1) / np.log(10.0))


def decode_spot(
    spot: TestSpot,
    probability_matrix: np.ndarray,
    protein_ids: Sequence[str],
    metric: str = "pearson",
    on_degenerate: DegenerateMode = "raise",
) -> IdentificationResult:
    """Identify the protein of one spot and score the confidence of the call."""
    scores = score_candidates(spot.observed, probability_matrix, metric)
    best = select_best(scores)

    try:
        confidence = marginal_confidence(scores)
    except DegenerateScoreDistributionError:
        if on_degenerate != "zero":
            raise
        logger = logging.getLogger(__name__)
        logger.debug(f"Degenerate scores for spot holding {spot.true_protein_id}; confidence set to 0")
        confidence = 0.0

    return IdentificationResult(
        true_protein_id=spot.true_protein_id,
        inferred_protein_id=protein_ids[best],
        score=float(scores[best]),
        marginal_confidence=confidence,
    )


def decode_spots(
    spots: Sequence[TestSpot],
    probability_matrix: np.ndarray,
    protein_ids: Sequence[str],
    metric: str = "pearson",
    on_degenerate: DegenerateMode = "raise",
    n_jobs: int = 1,
) -> List[IdentificationResult]:
    """
    Decode every spot, preserving input order.

    Spots are independent, so ``n_jobs != 1`` fans them out through joblib.
    """
    if on_degenerate not in ("raise", "zero"):
        raise ValueError(f"on_degenerate must be 'raise' or 'zero', got {on_degenerate!r}")
    if len(protein_ids) != probability_matrix.shape[1]:
        raise InvalidInputError(
            f"{len(protein_ids)} protein id(s) for a matrix with {probability_matrix.shape[1]} column(s)"
        )
    registry.get(metric)

    logger = logging.getLogger(__name__)
    logger.info(f"Decoding {len(spots)} spot(s) against {len(protein_ids)} candidate(s) with metric '{metric}'")

    if n_jobs == 1:
        return [decode_spot(spot, probability_matrix, protein_ids, metric, on_degenerate) for spot in spots]

    return Parallel(n_jobs=n_jobs, backend="loky")(
        delayed(decode_spot)(spot, probability_matrix, protein_ids, metric, on_degenerate) for spot in spots
    )
