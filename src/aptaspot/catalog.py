"""
catalog
=======

Immutable containers for the reference protein catalog.  A catalog is the
ordered, de-duplicated list of proteins together with their integer-encoded
sequences; every matrix in the simulation is indexed by catalog position.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Any, Iterable, Mapping, Tuple, Union

import numpy as np
import pandas as pd

from aptaspot.errors import InvalidInputError
from aptaspot.functions import ALPHABET, encode_sequences
from aptaspot.ragged import RaggedData

STANDARD_RESIDUES = "ACDEFGHIKLMNPQRSTVWY"


@dataclass(frozen=True)
class Protein:
    """A catalog entry.

    Attributes
    ----------
    id : str
        Unique identifier.
    sequence : str
        Upper-case residue string.
    abundance : float
        Relative abundance used as the sampling weight.
    """

    id: str
    sequence: str
    abundance: float = 1.0


@dataclass(frozen=True)
class ProteinCatalog:
    """Ordered protein collection with encoded sequences."""

    proteins: Tuple[Protein, ...]
    encoded: RaggedData = dc_field(repr=False, compare=False)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(p.id for p in self.proteins)

    @property
    def sequences(self) -> Tuple[str, ...]:
        return tuple(p.sequence for p in self.proteins)

    @property
    def abundances(self) -> np.ndarray:
        return np.array([p.abundance for p in self.proteins], dtype=np.float64)

    def index_of(self, protein_id: str) -> int:
        """Catalog position of ``protein_id``."""
        for i, protein in enumerate(self.proteins):
            if protein.id == protein_id:
                return i
        raise KeyError(protein_id)

    def __len__(self) -> int:
        return len(self.proteins)

    def __iter__(self):
        return iter(self.proteins)


CatalogSource = Union[ProteinCatalog, pd.DataFrame, Iterable[Union[Protein, Mapping[str, Any]]]]


def _coerce_protein(record: Union[Protein, Mapping[str, Any]]) -> Protein:
    """Build a validated Protein from a Protein or a mapping with id/sequence/abundance."""
    if isinstance(record, Protein):
        protein_id, sequence, abundance = record.id, record.sequence, record.abundance
    elif isinstance(record, Mapping):
        try:
            protein_id, sequence = record["id"], record["sequence"]
        except KeyError as e:
            raise InvalidInputError(f"Catalog record is missing field {e.args[0]!r}") from e
        abundance = record.get("abundance", 1.0)
    else:
        raise TypeError(f"Unsupported catalog record type: {type(record)!r}")

    if not isinstance(sequence, str):
        raise InvalidInputError(f"Sequence for protein {protein_id!r} is not a string")
    sequence = sequence.strip().upper()
    if not sequence:
        raise InvalidInputError(f"Protein {protein_id!r} has an empty sequence")

    abundance = float(abundance)
    if not np.isfinite(abundance) or abundance < 0:
        raise InvalidInputError(f"Protein {protein_id!r} has invalid abundance {abundance}")

    return Protein(id=str(protein_id), sequence=sequence, abundance=abundance)


def build_catalog(source: CatalogSource) -> ProteinCatalog:
    """
    Build a ProteinCatalog from a DataFrame, an iterable of records, or a catalog.

    Duplicate ids are collapsed by keeping the first occurrence.

    Raises
    ------
    InvalidInputError
        If the catalog is empty or a record is malformed.
    """
    if isinstance(source, ProteinCatalog):
        return source

    if isinstance(source, pd.DataFrame):
        missing = {"id", "sequence"} - set(source.columns)
        if missing:
            raise InvalidInputError(f"Catalog table is missing columns: {sorted(missing)}")
        records = source.to_dict(orient="records")
    else:
        records = list(source)

    proteins = {}
    duplicates = 0
    for record in records:
        protein = _coerce_protein(record)
        if protein.id in proteins:
            duplicates += 1
            continue
        proteins[protein.id] = protein

    if not proteins:
        raise InvalidInputError("Protein catalog is empty")

    logger = logging.getLogger(__name__)
    if duplicates:
        logger.info(f"Collapsed {duplicates} duplicate protein id(s)")

    ordered = tuple(proteins.values())
    encoded = encode_sequences(p.sequence for p in ordered)
    logger.debug(f"Catalog: {encoded.num_sequences} protein(s), {encoded.data.size} residue(s)")
    return ProteinCatalog(proteins=ordered, encoded=encoded)


def random_catalog(
    n_proteins: int,
    length: int,
    rng: np.random.Generator,
    abundance_sigma: float = 1.0,
    alphabet: str = STANDARD_RESIDUES,
) -> ProteinCatalog:
    """Generate a synthetic catalog with log-normal abundances."""

    if n_proteins <= 0:
        raise InvalidInputError(f"n_proteins must be positive, got {n_proteins}")
    if length <= 0:
        raise InvalidInputError(f"length must be positive, got {length}")
    if any(ch not in ALPHABET for ch in alphabet):
        raise InvalidInputError(f"Alphabet contains unsupported characters: {alphabet!r}")

    letters = np.array(list(alphabet))
    residues = rng.integers(0, len(letters), size=(n_proteins, length))
    abundances = rng.lognormal(mean=0.0, sigma=abundance_sigma, size=n_proteins)

    proteins = [
        Protein(id=f"P{i:05d}", sequence="".join(letters[row]), abundance=float(abundance))
        for i, (row, abundance) in enumerate(zip(residues, abundances))
    ]
    return build_catalog(proteins)
