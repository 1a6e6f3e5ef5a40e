"""
Unit tests for key computational functions in aptaspot.

These tests validate the correctness of individual functions from:
- aptaspot/motifs.py and aptaspot/functions.py
- aptaspot/catalog.py and aptaspot/models.py
- aptaspot/sampling.py, aptaspot/decoder.py and aptaspot/evaluation.py
- aptaspot/diagnostics.py
"""

import numpy as np
import pandas as pd
import pytest
from scipy.stats import chisquare, norm

from aptaspot.catalog import Protein, build_catalog, random_catalog
from aptaspot.decoder import (
    IdentificationResult,
    decode_spot,
    decode_spots,
    marginal_confidence,
    score_candidates,
    select_best,
)
from aptaspot.decoder import registry as scoring_registry
from aptaspot.diagnostics import fit_probability_mixture, probability_density
from aptaspot.errors import DegenerateScoreDistributionError, EmptyProbeSetError, InvalidInputError
from aptaspot.evaluation import evaluate, results_to_frame
from aptaspot.functions import (
    MAX_MOTIF_LENGTH,
    bernoulli_loglik,
    check_motif_length,
    count_probe_hits,
    encode_motif,
    encode_sequence,
    encode_sequences,
    vectorized_pcc,
)
from aptaspot.models import (
    PROBABILITY_FLOOR,
    Probe,
    ProbeSet,
    affinity_matrix,
    build_probe_set,
    compute_affinity,
    count_matrix,
    probability_matrix,
    to_probability,
)
from aptaspot.motifs import candidate_motifs, extract_motifs, motif_counts
from aptaspot.sampling import TestSpot, draw_observation, draw_test_panel, draw_test_spots


def test_extract_motifs_basic():
    """Test overlapping 3-mer extraction"""
    assert extract_motifs("MKTAY", 3) == ["MKT", "KTA", "TAY"]


@pytest.mark.parametrize("length", [3, 4, 10, 57])
def test_extract_motifs_count(length):
    """Test that a length-L sequence yields L - k + 1 motifs"""
    sequence = "ACDEFGHIKL" * 6
    assert len(extract_motifs(sequence[:length], 3)) == length - 3 + 1


def test_extract_motifs_too_short():
    """Test that k larger than the sequence is rejected"""
    with pytest.raises(InvalidInputError):
        extract_motifs("MK", 3)

    # InvalidInputError is also a ValueError
    with pytest.raises(ValueError):
        extract_motifs("", 1)


def test_candidate_motifs_first_appearance_order():
    """Test motif union keeps first-appearance order and drops duplicates"""
    motifs = candidate_motifs(["AAAA", "AAB", "BAAA", "Q"], 3)
    assert motifs == ["AAA", "AAB", "BAA"]


def test_motif_counts():
    """Test per-sequence motif counting"""
    counts = motif_counts("AAAAGG", 3)
    assert counts["AAA"] == 2
    assert counts["AGG"] == 1
    assert counts["CCC"] == 0
    assert motif_counts("AA", 3) == {}


def test_encode_sequence():
    """Test integer encoding of residues"""
    np.testing.assert_array_equal(encode_sequence("ACz"), np.array([0, 2, 25], dtype=np.int8))
    assert encode_motif("ABC") == 0 * 26 * 26 + 1 * 26 + 2

    with pytest.raises(InvalidInputError):
        encode_sequence("AC1")


def test_count_probe_hits():
    """Test the JIT probe occurrence kernel"""
    sequences = encode_sequences(["AAAA", "AAB", "AA"])
    codes = np.array([encode_motif("AAA"), encode_motif("AAB"), encode_motif("ZZZ")])

    counts = count_probe_hits(sequences, codes, k=3)

    expected = np.array([[2, 0, 0], [0, 1, 0], [0, 0, 0]])
    np.testing.assert_array_equal(counts, expected)


def test_count_probe_hits_long_motifs():
    """Test counting with motif lengths far beyond a dense code table"""
    sequences = encode_sequences(["MKTAYIAKQRMKTAYIAK", "ACDEFGHIKL"])
    codes = np.array([encode_motif("MKTAYIAK"), encode_motif("CDEFGHIK"), encode_motif("WWWWWWWW")])

    counts = count_probe_hits(sequences, codes, k=8)

    np.testing.assert_array_equal(counts, [[2, 0], [0, 1], [0, 0]])

    with pytest.raises(InvalidInputError):
        count_probe_hits(sequences, codes, k=MAX_MOTIF_LENGTH + 1)
    with pytest.raises(InvalidInputError):
        check_motif_length(0)


def test_count_probe_hits_unsorted_codes():
    """Test that counts follow probe order whatever the code order"""
    sequences = encode_sequences(["ZZZAAA", "AAAZ"])
    codes = np.array([encode_motif("ZZZ"), encode_motif("AAA"), encode_motif("AAZ")])

    counts = count_probe_hits(sequences, codes, k=3)

    np.testing.assert_array_equal(counts, [[1, 0], [1, 1], [0, 1]])


def test_vectorized_pcc_matches_corrcoef():
    """Test column-wise Pearson correlation"""
    rng = np.random.default_rng(5)
    vector = (rng.random(30) < 0.5).astype(np.uint8)
    matrix = rng.random((30, 4))

    result = vectorized_pcc(vector, matrix)

    expected = [np.corrcoef(vector, matrix[:, j])[0, 1] for j in range(4)]
    np.testing.assert_allclose(result, expected, rtol=1e-10)


def test_vectorized_pcc_zero_variance():
    """Test that zero-variance inputs give zero correlation instead of NaN"""
    matrix = np.array([[0.2, 0.5], [0.2, 0.1], [0.2, 0.7]])
    result = vectorized_pcc(np.array([1, 0, 1]), matrix)
    assert result[0] == 0.0
    assert np.isfinite(result[1])

    np.testing.assert_array_equal(vectorized_pcc(np.zeros(3), matrix), [0.0, 0.0])
    np.testing.assert_array_equal(vectorized_pcc(np.ones(3), matrix), [0.0, 0.0])

    # constant columns whose centred values are not exactly zero
    constant = np.column_stack([np.full(7, 0.1), np.full(7, 1.0 / 3.0), np.full(7, 0.7)])
    np.testing.assert_array_equal(vectorized_pcc(np.array([1, 0, 1, 1, 0, 0, 1]), constant), [0.0, 0.0, 0.0])


def test_bernoulli_loglik():
    """Test Bernoulli log-likelihood scoring"""
    matrix = np.array([[0.9, 0.2], [0.1, 0.6]])
    result = bernoulli_loglik(np.array([1, 0]), matrix)
    expected = [np.log(0.9) + np.log(0.9), np.log(0.2) + np.log(0.4)]
    np.testing.assert_allclose(result, expected)


def test_build_catalog_collapses_duplicates():
    """Test catalog construction from records"""
    catalog = build_catalog(
        [
            Protein("P1", "mktay", 2.0),
            {"id": "P2", "sequence": "GGGG"},
            Protein("P1", "WWWW", 5.0),
        ]
    )

    assert catalog.ids == ("P1", "P2")
    assert catalog.sequences == ("MKTAY", "GGGG")
    np.testing.assert_array_equal(catalog.abundances, [2.0, 1.0])
    assert catalog.encoded.num_sequences == 2
    assert catalog.index_of("P2") == 1


def test_build_catalog_from_dataframe():
    """Test catalog construction from a pandas table"""
    table = pd.DataFrame({"id": ["X", "Y"], "sequence": ["ACDE", "FGHI"], "abundance": [0.5, 1.5]})
    catalog = build_catalog(table)
    assert catalog.ids == ("X", "Y")
    np.testing.assert_array_equal(catalog.abundances, [0.5, 1.5])


def test_build_catalog_rejects_bad_input():
    """Test catalog validation errors"""
    with pytest.raises(InvalidInputError):
        build_catalog([])
    with pytest.raises(InvalidInputError):
        build_catalog([Protein("P1", "ACDE", -1.0)])
    with pytest.raises(InvalidInputError):
        build_catalog([Protein("P1", "AC-DE", 1.0)])
    with pytest.raises(InvalidInputError):
        build_catalog(pd.DataFrame({"name": ["P1"], "sequence": ["ACDE"]}))


def test_random_catalog():
    """Test synthetic catalog generation"""
    catalog = random_catalog(8, 40, np.random.default_rng(3))
    assert len(catalog) == 8
    assert all(len(seq) == 40 for seq in catalog.sequences)
    assert np.all(catalog.abundances > 0)


def test_probe_set_validation():
    """Test ProbeSet invariants"""
    with pytest.raises(EmptyProbeSetError):
        ProbeSet.from_probes([])
    with pytest.raises(InvalidInputError):
        ProbeSet.from_probes([Probe("AAA", -5.0, -1.0), Probe("AAA", -5.0, -1.0)])
    with pytest.raises(InvalidInputError):
        ProbeSet.from_probes([Probe("AAAA", -5.0, -1.0)])
    with pytest.raises(InvalidInputError):
        ProbeSet.from_probes([Probe("A" * 14, -5.0, -1.0)], k=14)

    probes = ProbeSet.from_probes([Probe("AAA", -5.0, -1.0), Probe("CCC", -4.0, -2.0)])
    assert len(probes) == 2
    assert probes[1] == Probe("CCC", -4.0, -2.0)
    assert probes.probes[0].motif == "AAA"

    # Probe set is immutable
    with pytest.raises(ValueError):
        probes.on_target[0] = 0.0


def test_build_probe_set_size_and_determinism():
    """Test probe selection draws floor(fraction * n) distinct motifs reproducibly"""
    candidates = candidate_motifs(["ACDEFGHIKLMNPQRSTVWY"], 3)

    probes1 = build_probe_set(candidates, 0.5, np.random.default_rng(42))
    probes2 = build_probe_set(candidates, 0.5, np.random.default_rng(42))

    assert len(probes1) == int(np.floor(0.5 * len(candidates)))
    assert len(set(probes1.motifs)) == len(probes1)
    assert set(probes1.motifs) <= set(candidates)
    assert probes1.motifs == probes2.motifs
    np.testing.assert_array_equal(probes1.on_target, probes2.on_target)
    np.testing.assert_array_equal(probes1.off_target, probes2.off_target)


def test_build_probe_set_affinity_distribution():
    """Test that affinities are centred on the log10 base constants"""
    candidates = candidate_motifs(["ACDEFGHIKLMNPQRSTVWY" * 3, "WYVTSRQPNMLKIHGFEDCA" * 3], 3)
    probes = build_probe_set(
        candidates,
        1.0,
        np.random.default_rng(0),
        on_target_affinity_base=1e-5,
        off_target_affinity_base=1e-1,
        affinity_std=0.0,
    )
    np.testing.assert_allclose(probes.on_target, -5.0)
    np.testing.assert_allclose(probes.off_target, -1.0)


def test_build_probe_set_errors():
    """Test probe selection failure modes"""
    candidates = ["AAA", "CCC", "DDD", "EEE", "FFF"]
    with pytest.raises(EmptyProbeSetError):
        build_probe_set(candidates, 0.1, np.random.default_rng(0))
    with pytest.raises(InvalidInputError):
        build_probe_set(candidates, 1.5, np.random.default_rng(0))
    with pytest.raises(InvalidInputError):
        build_probe_set(candidates, 0.5, np.random.default_rng(0), on_target_affinity_base=0.0)


def test_compute_affinity_occurrences():
    """Test the linear-in-count affinity model"""
    probe = Probe("AAA", -5.0, -1.0)

    assert compute_affinity(probe, "CCCCC") == probe.off_target_log_affinity
    assert compute_affinity(probe, "AAAC") == probe.off_target_log_affinity + probe.on_target_log_affinity
    assert compute_affinity(probe, "AAAAA") == pytest.approx(-1.0 + 3 * -5.0)


def test_affinity_matrix_matches_pairwise(small_catalog, assay_probes):
    """Test that the vectorised matrix equals per-pair affinities"""
    counts = count_matrix(assay_probes, small_catalog)
    affinity = affinity_matrix(assay_probes, small_catalog, counts)

    assert affinity.shape == (5, 3)
    assert not affinity.flags.writeable
    for i, probe in enumerate(assay_probes.probes):
        for j, sequence in enumerate(small_catalog.sequences):
            assert affinity[i, j] == pytest.approx(compute_affinity(probe, sequence))

    np.testing.assert_array_equal(counts[:, 0], [2, 1, 0, 0, 0])


def test_to_probability_values():
    """Test the logistic probability model"""
    assert to_probability(np.log10(1e-3), 1e-3) == pytest.approx(0.5)
    assert to_probability(-2.0, 1e-3) == pytest.approx(1.0 / (1.0 + np.exp(-2.0 + 3.0)))

    with pytest.raises(InvalidInputError):
        to_probability(0.0, 0.0)


def test_to_probability_monotone_and_bounded():
    """Test monotonicity and strict (0, 1) bounds"""
    log_affinity = np.linspace(-1000.0, 1000.0, 2001)
    p = to_probability(log_affinity, 1e-3)

    assert np.all(np.diff(p) <= 0)
    assert np.all(p > 0.0) and np.all(p < 1.0)
    assert p.min() == PROBABILITY_FLOOR


def test_probability_matrix_read_only():
    """Test that probability matrices cannot be mutated"""
    probabilities = probability_matrix(np.array([[0.0, -5.0], [2.0, 1.0]]), 1.0)
    assert not probabilities.flags.writeable
    assert probabilities[0, 1] > probabilities[0, 0]


def test_draw_test_panel_frequencies():
    """Test abundance-weighted sampling with a chi-square goodness-of-fit test"""
    weights = np.array([1.0, 2.0, 3.0, 4.0, 0.0])
    n = 20000

    panel = draw_test_panel(n, weights, np.random.default_rng(2024))

    observed = np.bincount(panel, minlength=weights.size)
    assert observed[-1] == 0
    expected = n * weights[:-1] / weights.sum()
    _, p_value = chisquare(observed[:-1], expected)
    assert p_value > 0.001


def test_draw_test_panel_errors():
    """Test sampling input validation"""
    rng = np.random.default_rng(0)
    with pytest.raises(InvalidInputError):
        draw_test_panel(0, np.ones(3), rng)
    with pytest.raises(InvalidInputError):
        draw_test_panel(10, np.zeros(3), rng)
    with pytest.raises(InvalidInputError):
        draw_test_panel(10, np.array([1.0, -1.0]), rng)


def test_draw_observation_extremes():
    """Test Bernoulli observations at near-certain probabilities"""
    column = np.array([PROBABILITY_FLOOR, 1.0 - PROBABILITY_FLOOR] * 50)
    matrix = np.column_stack([column, column[::-1]])

    observed = draw_observation(0, matrix, np.random.default_rng(9))

    assert observed.shape == (100,)
    assert observed.dtype == np.uint8
    np.testing.assert_array_equal(observed, np.tile([0, 1], 50))


def test_draw_test_spots(small_catalog, toy_probabilities):
    """Test that every spot has one observation per probe"""
    with pytest.raises(InvalidInputError):
        draw_test_spots(5, small_catalog, toy_probabilities[:, :2], np.random.default_rng(0))

    spots = draw_test_spots(25, small_catalog, toy_probabilities, np.random.default_rng(0))
    assert len(spots) == 25
    for spot in spots:
        assert spot.observed.shape == (toy_probabilities.shape[0],)
        assert small_catalog.ids[spot.protein_index] == spot.true_protein_id


def test_scoring_registry():
    """Test scoring metric registry functionality"""
    assert set(scoring_registry.available) == {"pearson", "cosine", "loglik"}
    with pytest.raises(ValueError):
        scoring_registry.get("invalid_metric")
    with pytest.raises(ValueError):
        score_candidates(np.zeros(6), np.full((6, 3), 0.5), metric="invalid_metric")


def test_score_candidates_shape_mismatch(toy_probabilities):
    """Test that an observation of the wrong length is rejected"""
    with pytest.raises(InvalidInputError):
        score_candidates(np.zeros(5), toy_probabilities)


@pytest.mark.parametrize("metric", ["pearson", "cosine", "loglik"])
def test_decoder_noiseless_pattern(toy_probabilities, metric):
    """Test that each protein's own rounded column decodes to that protein"""
    ids = ["A", "B", "C"]
    for j, protein_id in enumerate(ids):
        observed = np.round(toy_probabilities[:, j]).astype(np.uint8)
        spot = TestSpot(protein_id, j, observed)
        result = decode_spot(spot, toy_probabilities, ids, metric=metric)
        assert result.inferred_protein_id == protein_id
        assert result.correct


def test_decoder_determinism(toy_probabilities):
    """Test that repeated decoding gives identical results"""
    spot = TestSpot("B", 1, np.array([1, 0, 1, 1, 0, 0], dtype=np.uint8))
    first = decode_spot(spot, toy_probabilities, ["A", "B", "C"])
    second = decode_spot(spot, toy_probabilities, ["A", "B", "C"])
    assert first == second


def test_select_best_first_tie_wins():
    """Test deterministic tie-break in catalog order"""
    assert select_best(np.array([0.2, 0.7, 0.7, 0.1])) == 1
    assert select_best(np.array([0.0, 0.0, 0.0])) == 0
    assert select_best(np.array([-1.0, -0.5, -0.5])) == 1


def test_marginal_confidence_tied_top():
    """Test that a tie between the two best candidates gives zero confidence"""
    assert marginal_confidence(np.array([0.9, 0.9, 0.1, 0.2])) == pytest.approx(0.0)


def test_marginal_confidence_value():
    """Test confidence against a direct normal-fit computation"""
    scores = np.array([0.1, 0.2, 0.9, 0.5, -0.3])
    mean, std = scores.mean(), scores.std()
    expected = np.log10(norm.sf(0.5, mean, std)) - np.log10(norm.sf(0.9, mean, std))

    assert marginal_confidence(scores) == pytest.approx(expected)
    assert marginal_confidence(scores) > 0


def test_marginal_confidence_extreme_scores_finite():
    """Test that extreme outliers still give a finite confidence"""
    scores = np.concatenate([np.zeros(5000), [1e3]])
    scores[0] = 1e-3
    assert np.isfinite(marginal_confidence(scores))


def test_marginal_confidence_degenerate():
    """Test that all-equal scores raise instead of returning a number"""
    with pytest.raises(DegenerateScoreDistributionError):
        marginal_confidence(np.full(5, 0.3))
    with pytest.raises(DegenerateScoreDistributionError):
        marginal_confidence(np.array([0.8]))


def test_decode_spot_degenerate_modes(toy_probabilities):
    """Test handling of a zero-variance observation"""
    spot = TestSpot("A", 0, np.zeros(6, dtype=np.uint8))
    ids = ["A", "B", "C"]

    with pytest.raises(DegenerateScoreDistributionError):
        decode_spot(spot, toy_probabilities, ids)

    result = decode_spot(spot, toy_probabilities, ids, on_degenerate="zero")
    assert result.marginal_confidence == 0.0
    assert result.inferred_protein_id == "A"


def test_decode_spots_parallel_matches_serial(small_catalog, toy_probabilities):
    """Test that parallel decoding preserves order and values"""
    spots = draw_test_spots(20, small_catalog, toy_probabilities, np.random.default_rng(1))
    ids = list(small_catalog.ids)

    serial = decode_spots(spots, toy_probabilities, ids, on_degenerate="zero")
    parallel = decode_spots(spots, toy_probabilities, ids, on_degenerate="zero", n_jobs=2)

    assert serial == parallel

    with pytest.raises(ValueError):
        decode_spots(spots, toy_probabilities, ids, on_degenerate="ignore")
    with pytest.raises(InvalidInputError):
        decode_spots(spots, toy_probabilities, ids[:2])


def _result(true_id, inferred_id):
    return IdentificationResult(true_id, inferred_id, 0.5, 1.0)


def test_evaluate_invariants():
    """Test confusion matrix totals, diagonal and accuracy"""
    results = [
        _result("A", "A"),
        _result("A", "B"),
        _result("B", "B"),
        _result("C", "C"),
        _result("C", "C"),
        _result("C", "A"),
    ]

    summary = evaluate(results, ["A", "B", "C"])

    assert summary.confusion.to_numpy().sum() == summary.n_spots == 6
    assert np.trace(summary.confusion.to_numpy()) == summary.n_correct == 4
    assert summary.accuracy == pytest.approx(4 / 6)
    assert summary.pair_counts[("C", "C")] == 2
    assert summary.pair_counts[("A", "B")] == 1
    assert summary.confusion.loc["C", "A"] == 1
    assert summary.per_class.loc["B", "precision"] == pytest.approx(0.5)
    assert summary.per_class.loc["C", "recall"] == pytest.approx(2 / 3)
    assert summary.to_dict()["n_correct"] == 4


def test_evaluate_errors():
    """Test evaluation input validation"""
    with pytest.raises(InvalidInputError):
        evaluate([], ["A"])
    with pytest.raises(InvalidInputError):
        evaluate([_result("A", "Q")], ["A", "B"])


def test_results_to_frame():
    """Test tabular display helper"""
    frame = results_to_frame([_result("A", "A"), _result("B", "A")])
    assert list(frame.columns) == ["true_protein_id", "inferred_protein_id", "score", "marginal_confidence", "correct"]
    assert frame["correct"].tolist() == [True, False]


def test_fit_probability_mixture_bimodal():
    """Test that the mixture separates low and high probability modes"""
    rng = np.random.default_rng(11)
    low = rng.normal(0.05, 0.02, size=600)
    high = rng.normal(0.95, 0.02, size=400)
    matrix = np.clip(np.concatenate([low, high]), 0.001, 0.999).reshape(50, 20)

    mixture = fit_probability_mixture(matrix, np.random.default_rng(0), n_samples=800)

    assert mixture.n_samples == 800
    assert mixture.means[0] < 0.2 < 0.8 < mixture.means[1]
    assert sum(mixture.weights) == pytest.approx(1.0)
    assert mixture.separation > 5


def test_diagnostics_degenerate_matrix():
    """Test that a constant matrix cannot be characterised"""
    with pytest.raises(InvalidInputError):
        fit_probability_mixture(np.full((4, 4), 0.3), np.random.default_rng(0))
    with pytest.raises(InvalidInputError):
        probability_density(np.full((4, 4), 0.3))


def test_probability_density(toy_probabilities):
    """Test density estimate over the unit interval"""
    grid, density = probability_density(toy_probabilities, grid_size=50)
    assert grid.shape == density.shape == (50,)
    assert np.all(density >= 0)


if __name__ == "__main__":
    pytest.main([__file__])
