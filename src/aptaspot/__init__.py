"""
APTASPOT
==================

This package simulates a multiplexed aptamer-based protein detector and
measures how well protein identity can be recovered, spot by spot, from
noisy binary binding observations.  Probes are short motifs (3-mers) drawn
from the catalog's own sequences; each probe binds each protein with a
probability that follows from a log-affinity model and the reagent
concentration.  All randomness flows from one explicit, seedable
``numpy.random.Generator`` so that a run is reproducible bit for bit.

The top level modules expose the following key components:

``motifs``
    Decomposition of sequences into overlapping k-mers and the candidate
    motif universe.

``catalog``
    Immutable protein catalog with integer-encoded sequences.

``models``
    Probe selection, the linear-in-count affinity model and the logistic
    probability model producing dense probe x protein matrices.

``sampling``
    Abundance-weighted test panels and Bernoulli binding observations.

``decoder``
    Correlation scoring of every candidate, best-match selection and the
    marginal confidence statistic.

``evaluation``
    Confusion matrices, per-protein precision/recall and accuracy.

``diagnostics``
    Optional descriptive fits over a built probability matrix.

``pipeline``
    The single-pass simulation driver and its configuration.

``cli``
    A command line interface exposing the pipeline to end users.
"""

from aptaspot.api import resolve_catalog, simulate
from aptaspot.catalog import Protein, ProteinCatalog, build_catalog, random_catalog
from aptaspot.decoder import IdentificationResult, decode_spot, decode_spots
from aptaspot.errors import (
    AptaspotError,
    DegenerateScoreDistributionError,
    EmptyProbeSetError,
    InvalidInputError,
)
from aptaspot.evaluation import EvaluationSummary, evaluate
from aptaspot.models import Probe, ProbeSet
from aptaspot.pipeline import Simulation, SimulationConfig, SimulationResult, create_config, run_simulation

__all__ = [
    "AptaspotError",
    "DegenerateScoreDistributionError",
    "EmptyProbeSetError",
    "EvaluationSummary",
    "IdentificationResult",
    "InvalidInputError",
    "Probe",
    "ProbeSet",
    "Protein",
    "ProteinCatalog",
    "Simulation",
    "SimulationConfig",
    "SimulationResult",
    "build_catalog",
    "create_config",
    "decode_spot",
    "decode_spots",
    "evaluate",
    "random_catalog",
    "resolve_catalog",
    "run_simulation",
    "simulate",
]
