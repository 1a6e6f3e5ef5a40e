"""
motifs
======

Decomposition of protein sequences into overlapping fixed-length motifs
(k-mers).  The string functions here define the motif universe from which
probes are drawn; the per-protein counting used to build the affinity
matrix runs on the integer-encoded path in :mod:`aptaspot.functions`.
"""

from collections import Counter
from typing import Iterable, List

from aptaspot.errors import InvalidInputError

DEFAULT_K = 3


def extract_motifs(sequence: str, k: int = DEFAULT_K) -> List[str]:
    """
    Return every length-``k`` substring of ``sequence`` at stride 1.

    Parameters
    ----------
    sequence : str
        Residue string.
    k : int
        Motif length.

    Returns
    -------
    list of str
        ``len(sequence) - k + 1`` motifs in positional order.

    Raises
    ------
    InvalidInputError
        If ``k`` is not positive or exceeds the sequence length.
    """
    if k < 1:
        raise InvalidInputError(f"Motif length must be positive, got {k}")
    if k > len(sequence):
        raise InvalidInputError(f"Motif length {k} exceeds sequence length {len(sequence)}")
    return [sequence[i : i + k] for i in range(len(sequence) - k + 1)]


def candidate_motifs(sequences: Iterable[str], k: int = DEFAULT_K) -> List[str]:
    """Distinct motifs across all sequences, in order of first appearance.

    Sequences shorter than ``k`` contribute no motifs.
    """
    seen = {}
    for sequence in sequences:
        if len(sequence) < k:
            continue
        for motif in extract_motifs(sequence, k):
            seen.setdefault(motif, None)
    return list(seen)


def motif_counts(sequence: str, k: int = DEFAULT_K) -> Counter:
    """Occurrence count of each motif in ``sequence``."""
    if len(sequence) < k:
        return Counter()
    return Counter(extract_motifs(sequence, k))
