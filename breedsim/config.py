"""Configuration system for breedsim.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides

Sections map 1:1 to YAML top-level keys; unknown keys are ignored so
older files keep loading.
"""

from __future__ import annotations

import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run control."""
    seed: int = 42
    n_generations: int = 5
    n_workers: int = 1           # Threads for the crossing engines (1 = serial)
    verbose: bool = False


@dataclass
class GenomeSection:
    """Genome layout used to build founders and genetic maps."""
    n_chr: int = 10
    loci_per_chr: int = 1000
    genetic_length: float = 1.0  # Morgans per chromosome
    allele_freq: float = 0.5     # Founder frequency of allele 1


@dataclass
class MeiosisSection:
    """Recombination parameters."""
    recomb_ratio: float = 1.0    # Female:male recombination rate (1 = equal)
    dh_use_female: bool = True   # Doubled haploids from a female meiosis


@dataclass
class PopulationSection:
    """Population sizes."""
    n_founders: int = 100
    n_offspring: int = 100       # Offspring per generation
    n_dh: int = 0                # DH lines per final individual (0 = none)


@dataclass
class SimulationConfig:
    """Complete breedsim configuration.

    Load from YAML via `load_config()`.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    genome: GenomeSection = field(default_factory=GenomeSection)
    meiosis: MeiosisSection = field(default_factory=MeiosisSection)
    population: PopulationSection = field(default_factory=PopulationSection)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> SimulationConfig:
    """Convert a merged YAML dict to a SimulationConfig."""
    section_map = {
        'simulation': SimulationSection,
        'genome': GenomeSection,
        'meiosis': MeiosisSection,
        'population': PopulationSection,
    }
    sections = {}
    for key, cls in section_map.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return SimulationConfig(**sections)


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Unusual but legal settings (very long chromosomes, strongly skewed
    recombination ratio) emit a UserWarning.
    """
    sim = config.simulation
    if sim.seed < 0:
        raise ValueError("simulation.seed must be non-negative")
    if sim.n_generations < 0:
        raise ValueError(
            f"simulation.n_generations must be >= 0, got {sim.n_generations}"
        )
    if sim.n_workers < 1:
        raise ValueError(f"simulation.n_workers must be >= 1, got {sim.n_workers}")

    g = config.genome
    if g.n_chr < 1:
        raise ValueError(f"genome.n_chr must be >= 1, got {g.n_chr}")
    if g.loci_per_chr < 1:
        raise ValueError(f"genome.loci_per_chr must be >= 1, got {g.loci_per_chr}")
    if g.genetic_length < 0:
        raise ValueError(
            f"genome.genetic_length must be >= 0 Morgans, got {g.genetic_length}"
        )
    if not 0.0 <= g.allele_freq <= 1.0:
        raise ValueError(f"genome.allele_freq must be in [0, 1], got {g.allele_freq}")
    if g.genetic_length > 5.0:
        warnings.warn(
            f"genome.genetic_length = {g.genetic_length} M per chromosome is "
            f"unusually long; expect ~{g.genetic_length:.0f} crossovers per meiosis.",
            UserWarning,
            stacklevel=2,
        )

    m = config.meiosis
    if not m.recomb_ratio > 0:
        raise ValueError(f"meiosis.recomb_ratio must be > 0, got {m.recomb_ratio}")
    if m.recomb_ratio > 10.0 or m.recomb_ratio < 0.1:
        warnings.warn(
            f"meiosis.recomb_ratio = {m.recomb_ratio} gives one sex almost no "
            f"recombination.",
            UserWarning,
            stacklevel=2,
        )

    p = config.population
    if p.n_founders < 1:
        raise ValueError(f"population.n_founders must be >= 1, got {p.n_founders}")
    if p.n_offspring < 1:
        raise ValueError(f"population.n_offspring must be >= 1, got {p.n_offspring}")
    if p.n_dh < 0:
        raise ValueError(f"population.n_dh must be >= 0, got {p.n_dh}")


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    sweep_overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → sweep overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML (skipped if missing).
        sweep_overrides: Optional dict of parameter overrides.

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if sweep_overrides is not None:
        deep_merge(config_dict, sweep_overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
