import numpy as np
from numba import njit, prange

from aptaspot.errors import InvalidInputError
from aptaspot.ragged import RaggedData, ragged_from_list

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ALPHABET_SIZE = len(ALPHABET)

# longest motif whose base-26 code fits in int64
MAX_MOTIF_LENGTH = 13

_INVALID = 255
_TRANS_TABLE = bytearray([_INVALID] * 256)
for _code, _char in enumerate(ALPHABET.encode("ascii")):
    _TRANS_TABLE[_char] = _code
    _TRANS_TABLE[_char + 32] = _code


def encode_sequence(sequence: str) -> np.ndarray:
    """Integer-encode a residue string (A=0 ... Z=25), case-insensitive."""
    raw = sequence.encode("ascii", errors="replace")
    codes = np.frombuffer(raw.translate(_TRANS_TABLE), dtype=np.uint8)
    if np.any(codes == _INVALID):
        bad = sorted({ch for ch in sequence if ch.upper() not in ALPHABET})
        raise InvalidInputError(f"Sequence contains characters outside the alphabet: {bad}")
    return codes.astype(np.int8)


def encode_sequences(sequences) -> RaggedData:
    """Encode an iterable of residue strings into a RaggedData."""
    return ragged_from_list([encode_sequence(seq) for seq in sequences], dtype=np.int8)


def check_motif_length(k: int) -> None:
    """Raise InvalidInputError unless 1 <= k <= MAX_MOTIF_LENGTH."""
    if not 1 <= k <= MAX_MOTIF_LENGTH:
        raise InvalidInputError(f"Motif length must be between 1 and {MAX_MOTIF_LENGTH}, got {k}")


def encode_motif(motif: str) -> int:
    """Return the base-26 positional code of a motif."""
    code = 0
    for value in encode_sequence(motif):
        code = code * ALPHABET_SIZE + int(value)
    return code


@njit(inline="always")
def _kmer_code(data, start, k):
    """Positional code of the k-mer starting at ``start``."""
    code = 0
    for j in range(k):
        code = code * 26 + data[start + j]
    return code


@njit(parallel=True, cache=True)
def _count_probe_hits_jit(data, offsets, sorted_codes, order, k):
    """Count probe motif occurrences per sequence by binary search over sorted probe codes."""
    n_seq = len(offsets) - 1
    n_probes = sorted_codes.size
    counts = np.zeros((n_probes, n_seq), dtype=np.int64)

    for i in prange(n_seq):
        start = offsets[i]
        n_kmers = offsets[i + 1] - start - k + 1
        for pos in range(n_kmers):
            code = _kmer_code(data, start + pos, k)
            j = np.searchsorted(sorted_codes, code)
            if j < n_probes and sorted_codes[j] == code:
                counts[order[j], i] += 1

    return counts


def count_probe_hits(sequences: RaggedData, probe_codes: np.ndarray, k: int = 3) -> np.ndarray:
    """
    Count, for every (probe, sequence) pair, how often the probe motif occurs.

    Parameters
    ----------
    sequences : RaggedData
        Integer-encoded sequences.
    probe_codes : np.ndarray
        Positional codes of the probe motifs, one per probe, all distinct.
    k : int
        Motif length used to build ``probe_codes``.

    Returns
    -------
    np.ndarray
        Integer matrix of shape ``(n_probes, n_sequences)``.
    """
    check_motif_length(k)
    probe_codes = np.asarray(probe_codes, dtype=np.int64)
    order = np.argsort(probe_codes, kind="stable")
    return _count_probe_hits_jit(sequences.data, sequences.offsets, probe_codes[order], order, k)


def vectorized_pcc(vector: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Pearson correlation between ``vector`` and every column of ``matrix``.

    Zero-variance columns (or a zero-variance vector) give a correlation of 0.
    """
    vector = np.asarray(vector, dtype=np.float64)
    v_centered = vector - vector.mean()
    m_centered = matrix - matrix.mean(axis=0, keepdims=True)

    v_std = np.sqrt(np.sum(v_centered**2))
    m_stds = np.sqrt(np.sum(m_centered**2, axis=0))

    numerator = v_centered @ m_centered
    denominators = v_std * m_stds

    # centering a constant side leaves round-off, so test the raw values
    valid = (np.ptp(matrix, axis=0) > 0) & (denominators > 0)
    if np.ptp(vector) == 0:
        valid[:] = False
    safe = np.where(valid, denominators, 1.0)
    return np.where(valid, numerator / safe, 0.0)


def vectorized_cosine(vector: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity between ``vector`` and every column of ``matrix``."""
    vector = np.asarray(vector, dtype=np.float64)
    numerator = vector @ matrix
    denominators = np.sqrt(np.sum(vector**2)) * np.sqrt(np.sum(matrix**2, axis=0))
    safe = np.where(denominators > 1e-12, denominators, 1.0)
    return np.where(denominators > 1e-12, numerator / safe, 0.0)


def bernoulli_loglik(vector: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Log-likelihood of a binary vector under each column's Bernoulli probabilities."""
    vector = np.asarray(vector, dtype=np.float64)
    return vector @ np.log(matrix) + (1.0 - vector) @ np.log1p(-matrix)
