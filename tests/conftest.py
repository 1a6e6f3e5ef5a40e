"""
Pytest configuration and common fixtures for aptaspot tests.
"""

import numpy as np
import pytest

from aptaspot.catalog import Protein, build_catalog
from aptaspot.models import Probe, ProbeSet


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def small_catalog():
    """Three proteins with disjoint motif content."""
    return build_catalog(
        [
            Protein("A", "AAAAGG", 1.0),
            Protein("B", "CCCC", 2.0),
            Protein("C", "DDDDD", 1.0),
        ]
    )


@pytest.fixture
def assay_probes():
    """Five probes: two specific to A, one each for B and C, one matching nothing."""
    return ProbeSet.from_probes(
        [
            Probe("AAA", -30.0, 5.0),
            Probe("AGG", -30.0, 5.0),
            Probe("CCC", -30.0, 5.0),
            Probe("DDD", -30.0, 5.0),
            Probe("EEE", -30.0, 5.0),
        ]
    )


@pytest.fixture
def toy_probabilities():
    """Probe x protein probabilities with distinct, well separated columns."""
    return np.array(
        [
            [0.9, 0.1, 0.1],
            [0.9, 0.9, 0.1],
            [0.1, 0.9, 0.1],
            [0.1, 0.9, 0.9],
            [0.1, 0.1, 0.9],
            [0.9, 0.1, 0.9],
        ]
    )
