"""Synthetic test panels and noisy binary binding observations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import List

import numpy as np

from aptaspot.catalog import ProteinCatalog
from aptaspot.errors import InvalidInputError


@dataclass(frozen=True)
class TestSpot:
    """One measurement spot: the protein it holds and its observed binding vector."""

    __test__ = False

    true_protein_id: str
    protein_index: int
    observed: np.ndarray = dc_field(repr=False, compare=False)


def draw_test_panel(num_spots: int, weights: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """
    Draw protein indices with replacement, proportionally to ``weights``.

    Parameters
    ----------
    num_spots : int
        Number of spots in the panel.
    weights : np.ndarray
        Non-negative sampling weights aligned with the catalog.
    rng : np.random.Generator
        Random source.

    Returns
    -------
    np.ndarray
        ``int64`` protein indices, one per spot.
    """
    if num_spots <= 0:
        raise InvalidInputError(f"num_spots must be positive, got {num_spots}")

    weights = np.asarray(weights, dtype=np.float64)
    if weights.ndim != 1 or weights.size == 0:
        raise InvalidInputError("weights must be a non-empty 1-D array")
    if not np.all(np.isfinite(weights)) or np.any(weights < 0):
        raise InvalidInputError("weights must be finite and non-negative")
    total = weights.sum()
    if total <= 0:
        raise InvalidInputError("Total abundance weight is zero")

    return rng.choice(weights.size, size=num_spots, replace=True, p=weights / total).astype(np.int64)


def draw_observation(protein_index: int, probability_matrix: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """One Bernoulli trial per probe using the protein's probability column."""
    column = probability_matrix[:, protein_index]
    return (rng.random(column.shape[0]) < column).astype(np.uint8)


def draw_test_spots(
    num_spots: int,
    catalog: ProteinCatalog,
    probability_matrix: np.ndarray,
    rng: np.random.Generator,
) -> List[TestSpot]:
    """Draw a panel from catalog abundances, then an observation for every spot."""
    if probability_matrix.shape[1] != len(catalog):
        raise InvalidInputError(
            f"Probability matrix has {probability_matrix.shape[1]} column(s) for {len(catalog)} protein(s)"
        )

    panel = draw_test_panel(num_spots, catalog.abundances, rng)
    ids = catalog.ids
    spots = [TestSpot(ids[idx], int(idx), draw_observation(idx, probability_matrix, rng)) for idx in panel]

    logger = logging.getLogger(__name__)
    logger.info(f"Drew {len(spots)} test spot(s) over {len(np.unique(panel))} distinct protein(s)")
    return spots
