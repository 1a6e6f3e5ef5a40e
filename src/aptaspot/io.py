from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

import pandas as pd

from aptaspot.catalog import Protein, ProteinCatalog, build_catalog
from aptaspot.decoder import IdentificationResult
from aptaspot.errors import InvalidInputError
from aptaspot.evaluation import results_to_frame


def read_catalog(path: str | Path) -> ProteinCatalog:
    """Read a CSV or tab-separated catalog with id, sequence and optional abundance columns."""

    path = Path(path)
    sep = "," if path.suffix.lower() == ".csv" else "\t"
    table = pd.read_csv(path, sep=sep, dtype={"id": str, "sequence": str})
    table.columns = [str(c).strip().lower() for c in table.columns]

    if "abundance" not in table.columns:
        table["abundance"] = 1.0

    logger = logging.getLogger(__name__)
    logger.info(f"Read {len(table)} catalog row(s) from {path}")
    return build_catalog(table)


def read_fasta_catalog(path: str | Path, abundance: float = 1.0) -> ProteinCatalog:
    """Read a FASTA file into a catalog; the id is the first token of each header."""

    proteins: List[Protein] = []
    with open(path, "r") as handle:
        header = None
        chunks: List[str] = []
        for line in handle:
            line = line.strip()
            if not line:
                continue
            if line.startswith(">"):
                if header is not None:
                    proteins.append(Protein(header, "".join(chunks), abundance))
                tokens = line[1:].split()
                if not tokens:
                    raise InvalidInputError(f"Empty FASTA header in {path}")
                header = tokens[0]
                chunks = []
            else:
                chunks.append(line)

        if header is not None:
            proteins.append(Protein(header, "".join(chunks), abundance))

    return build_catalog(proteins)


def write_results(results: Sequence[IdentificationResult], path: str | Path) -> None:
    """Write identification results as a tab-separated table."""
    results_to_frame(results).to_csv(path, sep="\t", index=False)
