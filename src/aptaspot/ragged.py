from typing import Sequence

import numpy as np


class RaggedData:
    """
    Flat storage for variable-length integer-encoded protein sequences.

    Sequences are concatenated into one ``data`` array and delimited by
    ``offsets`` (length ``n + 1``), so the numba kernels can walk every protein
    without padding and without Python-level lists.
    """

    def __init__(self, data: np.ndarray, offsets: np.ndarray):
        self.data = data
        self.offsets = offsets

    @property
    def num_sequences(self) -> int:
        return self.offsets.size - 1


def ragged_from_list(data_list: Sequence[np.ndarray], dtype=np.int8) -> RaggedData:
    """Pack a list of 1-D arrays into a RaggedData."""
    if len(data_list) == 0:
        return RaggedData(np.empty(0, dtype=dtype), np.zeros(1, dtype=np.int64))

    lengths = np.fromiter((len(item) for item in data_list), dtype=np.int64, count=len(data_list))
    offsets = np.zeros(len(data_list) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum(lengths)

    data = np.empty(offsets[-1], dtype=dtype)
    for i, item in enumerate(data_list):
        data[offsets[i] : offsets[i + 1]] = item

    return RaggedData(data, offsets)
