"""High-level public API for running assay simulations."""

from pathlib import Path
from typing import Optional, Union

from aptaspot.catalog import CatalogSource, ProteinCatalog, build_catalog
from aptaspot.io import read_catalog, read_fasta_catalog
from aptaspot.models import ProbeSet
from aptaspot.pipeline import SimulationConfig, SimulationResult, create_config, run_simulation

CatalogRef = Union[CatalogSource, str, Path]

_FASTA_SUFFIXES = {".fa", ".fasta", ".faa"}


def simulate(
    catalog: CatalogRef,
    probes: Optional[ProbeSet] = None,
    config: Optional[SimulationConfig] = None,
    **config_kwargs,
) -> SimulationResult:
    """Single-call entry point: resolve the catalog, build the config and run."""

    if config is not None and config_kwargs:
        raise ValueError("Use either 'config' or config kwargs, not both.")

    resolved_config = config or create_config(**config_kwargs)
    return run_simulation(resolve_catalog(catalog), resolved_config, probes=probes)


def resolve_catalog(source: CatalogRef) -> ProteinCatalog:
    """Convert a catalog reference (file path, table or records) to a ProteinCatalog."""

    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Catalog file not found: {path}")
        if path.suffix.lower() in _FASTA_SUFFIXES:
            return read_fasta_catalog(path)
        return read_catalog(path)
    return build_catalog(source)
