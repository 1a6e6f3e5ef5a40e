"""Accuracy and confusion summaries of decoded spots."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix, precision_recall_fscore_support

from aptaspot.decoder import IdentificationResult
from aptaspot.errors import InvalidInputError


@dataclass(frozen=True)
class EvaluationSummary:
    """
    Aggregate of identification results.

    Attributes
    ----------
    pair_counts : dict
        ``(true_id, inferred_id) -> count`` for every observed pair.
    confusion : pd.DataFrame
        Counts with true ids as rows and inferred ids as columns, catalog order.
    per_class : pd.DataFrame
        Precision, recall, f1 and support per protein.
    accuracy : float
        Fraction of spots decoded correctly.
    n_spots : int
        Number of decoded spots.
    n_correct : int
        Number of correct calls.
    macro_precision : float
        Unweighted mean precision over proteins present in the panel.
    macro_recall : float
        Unweighted mean recall over proteins present in the panel.
    """

    pair_counts: Dict[Tuple[str, str], int] = dc_field(compare=False)
    confusion: pd.DataFrame = dc_field(repr=False, compare=False)
    per_class: pd.DataFrame = dc_field(repr=False, compare=False)
    accuracy: float
    n_spots: int
    n_correct: int
    macro_precision: float
    macro_recall: float

    def to_dict(self) -> dict:
        """JSON-friendly scalar summary."""
        return {
            "accuracy": self.accuracy,
            "n_spots": self.n_spots,
            "n_correct": self.n_correct,
            "macro_precision": self.macro_precision,
            "macro_recall": self.macro_recall,
        }


def evaluate(results: Sequence[IdentificationResult], protein_ids: Sequence[str]) -> EvaluationSummary:
    """Compare inferred identities with ground truth."""
    if len(results) == 0:
        raise InvalidInputError("No identification results to evaluate")

    labels = list(protein_ids)
    y_true = [r.true_protein_id for r in results]
    y_pred = [r.inferred_protein_id for r in results]

    unknown = (set(y_true) | set(y_pred)) - set(labels)
    if unknown:
        raise InvalidInputError(f"Results reference proteins outside the catalog: {sorted(unknown)}")

    matrix = confusion_matrix(y_true, y_pred, labels=labels)
    confusion = pd.DataFrame(matrix, index=pd.Index(labels, name="true"), columns=pd.Index(labels, name="inferred"))

    precision, recall, f1, support = precision_recall_fscore_support(
        y_true, y_pred, labels=labels, zero_division=0
    )
    per_class = pd.DataFrame(
        {"precision": precision, "recall": recall, "f1": f1, "support": support},
        index=pd.Index(labels, name="protein"),
    )

    n_spots = len(results)
    n_correct = int(np.trace(matrix))
    present = per_class["support"] > 0

    summary = EvaluationSummary(
        pair_counts=dict(Counter(zip(y_true, y_pred))),
        confusion=confusion,
        per_class=per_class,
        accuracy=n_correct / n_spots,
        n_spots=n_spots,
        n_correct=n_correct,
        macro_precision=float(per_class.loc[present, "precision"].mean()),
        macro_recall=float(per_class.loc[present, "recall"].mean()),
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Accuracy: {summary.accuracy:.4f} ({n_correct}/{n_spots})")
    return summary


def results_to_frame(results: Sequence[IdentificationResult]) -> pd.DataFrame:
    """Identification results as a table, one row per spot."""
    return pd.DataFrame(
        [
            {
                "true_protein_id": r.true_protein_id,
                "inferred_protein_id": r.inferred_protein_id,
                "score": r.score,
                "marginal_confidence": r.marginal_confidence,
                "correct": r.correct,
            }
            for r in results
        ],
        columns=["true_protein_id", "inferred_protein_id", "score", "marginal_confidence", "correct"],
    )
