"""
Binding Models Module
=====================

Affinity and probability models for the aptamer probe panel.

Key Features:
- Immutable probe containers using frozen dataclasses
- Probe selection and affinity draws driven only by an explicit ``np.random.Generator``
- Dense, read-only ``(n_probes, n_proteins)`` affinity and probability matrices

The affinity of probe ``i`` for protein ``j`` is linear in the number of
occurrences ``c`` of the probe motif in the protein::

    log_affinity = off_target_log_affinity + on_target_log_affinity * c

This is a simplifying assumption, not a saturating binding model.  Binding
probability is a logistic function of the log affinity relative to the
reagent concentration::

    p = 1 / (1 + exp(log_affinity - log10(concentration)))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Iterable, Sequence, Tuple, Union

import numpy as np
from scipy.special import expit

from aptaspot.catalog import ProteinCatalog
from aptaspot.errors import EmptyProbeSetError, InvalidInputError
from aptaspot.functions import check_motif_length, count_probe_hits, encode_motif
from aptaspot.motifs import DEFAULT_K, motif_counts

DEFAULT_ON_TARGET_AFFINITY = 1e-5
DEFAULT_OFF_TARGET_AFFINITY = 1e-1
DEFAULT_AFFINITY_STD = 0.5
DEFAULT_COVERAGE_FRACTION = 0.5

# keeps probabilities strictly inside (0, 1)
PROBABILITY_FLOOR = 1e-12


@dataclass(frozen=True)
class Probe:
    """A deployed motif probe with its two log10 affinities."""

    motif: str
    on_target_log_affinity: float
    off_target_log_affinity: float


@dataclass(frozen=True)
class ProbeSet:
    """
    Ordered probe panel stored as parallel arrays.

    Attributes
    ----------
    motifs : tuple of str
        Probe motifs; row order of every matrix.
    on_target : np.ndarray
        On-target log10 affinities.
    off_target : np.ndarray
        Off-target log10 affinities.
    k : int
        Motif length.
    """

    motifs: Tuple[str, ...]
    on_target: np.ndarray = dc_field(repr=False, compare=False)
    off_target: np.ndarray = dc_field(repr=False, compare=False)
    k: int = DEFAULT_K

    def __post_init__(self):
        object.__setattr__(self, "motifs", tuple(self.motifs))
        object.__setattr__(self, "on_target", np.array(self.on_target, dtype=np.float64))
        object.__setattr__(self, "off_target", np.array(self.off_target, dtype=np.float64))
        if len(self.motifs) == 0:
            raise EmptyProbeSetError("Probe set contains no probes")
        check_motif_length(self.k)
        if len(set(self.motifs)) != len(self.motifs):
            raise InvalidInputError("Probe motifs must be distinct")
        if any(len(m) != self.k for m in self.motifs):
            raise InvalidInputError(f"All probe motifs must have length {self.k}")
        if self.on_target.shape != (len(self.motifs),) or self.off_target.shape != (len(self.motifs),):
            raise InvalidInputError("Affinity arrays must have one entry per probe")
        self.on_target.setflags(write=False)
        self.off_target.setflags(write=False)

    @classmethod
    def from_probes(cls, probes: Iterable[Probe], k: int = DEFAULT_K) -> "ProbeSet":
        """Assemble a ProbeSet from individual probes."""
        probes = list(probes)
        return cls(
            motifs=tuple(p.motif for p in probes),
            on_target=np.array([p.on_target_log_affinity for p in probes], dtype=np.float64),
            off_target=np.array([p.off_target_log_affinity for p in probes], dtype=np.float64),
            k=k,
        )

    @property
    def codes(self) -> np.ndarray:
        """Positional integer codes of the motifs."""
        return np.array([encode_motif(m) for m in self.motifs], dtype=np.int64)

    @property
    def probes(self) -> Tuple[Probe, ...]:
        return tuple(
            Probe(motif, float(on), float(off)) for motif, on, off in zip(self.motifs, self.on_target, self.off_target)
        )

    def __len__(self) -> int:
        return len(self.motifs)

    def __getitem__(self, i: int) -> Probe:
        return Probe(self.motifs[i], float(self.on_target[i]), float(self.off_target[i]))


def _validate_base(name: str, value: float) -> None:
    if not value > 0:
        raise InvalidInputError(f"{name} must be positive, got {value}")


def build_probe_set(
    candidate_motifs: Sequence[str],
    coverage_fraction: float,
    rng: np.random.Generator,
    on_target_affinity_base: float = DEFAULT_ON_TARGET_AFFINITY,
    off_target_affinity_base: float = DEFAULT_OFF_TARGET_AFFINITY,
    affinity_std: float = DEFAULT_AFFINITY_STD,
) -> ProbeSet:
    """
    Promote a random subset of candidate motifs to probes.

    ``floor(coverage_fraction * len(candidate_motifs))`` motifs are chosen
    uniformly without replacement, keeping their candidate order.  Each probe
    then receives ``Normal(log10(base), affinity_std)`` draws, on-target for
    all probes first, then off-target.

    Raises
    ------
    InvalidInputError
        If the fraction is outside (0, 1], a base is not positive or the
        standard deviation is negative.
    EmptyProbeSetError
        If no probe survives selection.
    """
    if not 0 < coverage_fraction <= 1:
        raise InvalidInputError(f"coverage_fraction must be in (0, 1], got {coverage_fraction}")
    _validate_base("on_target_affinity_base", on_target_affinity_base)
    _validate_base("off_target_affinity_base", off_target_affinity_base)
    if affinity_std < 0:
        raise InvalidInputError(f"affinity_std must be non-negative, got {affinity_std}")

    candidates = list(candidate_motifs)
    n_probes = int(np.floor(coverage_fraction * len(candidates)))
    if n_probes == 0:
        raise EmptyProbeSetError(
            f"Coverage fraction {coverage_fraction} of {len(candidates)} candidate motif(s) yields no probes"
        )

    chosen = np.sort(rng.choice(len(candidates), size=n_probes, replace=False))
    on_target = rng.normal(np.log10(on_target_affinity_base), affinity_std, size=n_probes)
    off_target = rng.normal(np.log10(off_target_affinity_base), affinity_std, size=n_probes)

    k = len(candidates[0])
    probe_set = ProbeSet(motifs=tuple(candidates[i] for i in chosen), on_target=on_target, off_target=off_target, k=k)

    logger = logging.getLogger(__name__)
    logger.info(f"Selected {n_probes} probe(s) from {len(candidates)} candidate motif(s)")
    return probe_set


def compute_affinity(probe: Probe, sequence: str, k: int = DEFAULT_K) -> float:
    """Log affinity of one probe for one protein sequence."""
    count = motif_counts(sequence, k)[probe.motif]
    return probe.off_target_log_affinity + probe.on_target_log_affinity * count


def count_matrix(probes: ProbeSet, catalog: ProteinCatalog) -> np.ndarray:
    """Occurrences of each probe motif in each protein, shape ``(n_probes, n_proteins)``."""
    counts = count_probe_hits(catalog.encoded, probes.codes, k=probes.k)
    counts.setflags(write=False)
    return counts


def affinity_matrix(probes: ProbeSet, catalog: ProteinCatalog, counts: np.ndarray | None = None) -> np.ndarray:
    """Read-only log-affinity matrix, shape ``(n_probes, n_proteins)``."""
    if counts is None:
        counts = count_matrix(probes, catalog)
    affinity = probes.off_target[:, None] + probes.on_target[:, None] * counts
    affinity.setflags(write=False)

    logger = logging.getLogger(__name__)
    logger.debug(f"Affinity matrix shape: {affinity.shape}")
    return affinity


def to_probability(log_affinity: Union[float, np.ndarray], concentration: float) -> Union[float, np.ndarray]:
    """
    Binding probability for a log affinity at a reagent concentration.

    Monotonically non-increasing in ``log_affinity``; clipped to
    ``[PROBABILITY_FLOOR, 1 - PROBABILITY_FLOOR]``.
    """
    if not concentration > 0:
        raise InvalidInputError(f"concentration must be positive, got {concentration}")
    probability = expit(np.log10(concentration) - np.asarray(log_affinity, dtype=np.float64))
    probability = np.clip(probability, PROBABILITY_FLOOR, 1.0 - PROBABILITY_FLOOR)
    if probability.ndim == 0:
        return float(probability)
    return probability


def probability_matrix(affinity: np.ndarray, concentration: float) -> np.ndarray:
    """Read-only binding probability matrix derived from an affinity matrix."""
    probabilities = to_probability(affinity, concentration)
    probabilities.setflags(write=False)
    return probabilities
