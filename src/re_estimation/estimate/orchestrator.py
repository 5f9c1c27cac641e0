# src/re_estimation/estimate/orchestrator.py
"""
Run Re estimation over every stratum of a long-form incidence table.

Input columns: date, region, country, source, data_type, replicate,
local_infection (bool), value. Each (source, region, data_type, replicate)
stratum is estimated with every method and variation type; empty results
are skipped and the non-empty fragments are concatenated once.
"""

from dataclasses import dataclass, field, fields
from typing import Dict, Iterator, List, Optional, Sequence
import json
import logging
import pathlib

import numpy as np
import pandas as pd

from .engine import LocalAndImported, LocalOnly
from .intervals import add_custom_interval_ends, get_interval_ends
from .windows import estimate_re

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "date", "region", "country", "source", "data_type", "estimate_type",
    "replicate", "value", "variable",
]
STRATUM_COLUMNS = ["region", "country", "source", "data_type", "replicate"]


@dataclass
class EstimationConfig:
    sliding_window: int = 3
    methods: Sequence[str] = ("Cori", "WallingaTeunis")
    variation_types: Sequence[str] = ("step", "slidingWindow")
    minimum_cumul: float = 5
    mean_si: float = 4.8
    std_si: float = 2.3
    n_sim: int = 10
    # data_type -> method -> days between infection and report
    delays: Dict[str, Dict[str, float]] = field(default_factory=dict)
    # "left" / "right" -> method -> days dropped
    truncations: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: {"left": {"Cori": 5, "WallingaTeunis": 5},
                                 "right": {"Cori": 0, "WallingaTeunis": 0}}
    )


def load_estimation_config(path) -> EstimationConfig:
    """Read an EstimationConfig from a JSON file; unknown keys are rejected."""
    with pathlib.Path(path).open("r") as fh:
        raw = json.load(fh)
    known = {f.name for f in fields(EstimationConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown estimation config keys: {sorted(unknown)}")
    return EstimationConfig(**raw)


def incidence_input_from_frame(data_subset: pd.DataFrame):
    """LocalAndImported if the stratum has imported cases, else LocalOnly.

    Imported counts are aligned on the local dates; days without an imported
    row count as 0 and imported rows on days without local data are dropped.
    """
    is_local = data_subset["local_infection"].astype(bool)
    local = data_subset.loc[is_local]
    imported = data_subset.loc[~is_local]
    local_values = local["value"].to_numpy(dtype=float)
    if len(imported) > 0:
        imported_values = (
            imported.groupby("date")["value"].sum()
            .reindex(local["date"], fill_value=0)
            .to_numpy(dtype=float)
        )
        return LocalAndImported(local=local_values, imported=imported_values)
    return LocalOnly(local_values)


def _lookup(mapping, method, default, what):
    if mapping is not None and method in mapping:
        return mapping[method]
    logger.warning("No %s configured for method %s, using %s", what, method, default)
    return default


def do_re_estimation(data_subset: pd.DataFrame, config: EstimationConfig,
                     interval_ends, delays, rng=None) -> List[pd.DataFrame]:
    """Estimate one stratum with every method and variation type.

    Returns the non-empty result fragments, tagged with the stratum labels.
    """
    incidence = incidence_input_from_frame(data_subset)
    dates = data_subset.loc[data_subset["local_infection"].astype(bool), "date"]
    labels = {c: data_subset[c].iloc[0] for c in STRATUM_COLUMNS}

    fragments = []
    for method in config.methods:
        for variation in config.variation_types:
            result = estimate_re(
                dates=dates,
                incidence=incidence,
                method=method,
                variation=variation,
                estimate_offsetting=_lookup(delays, method, 0, "reporting offset"),
                right_truncation=_lookup(config.truncations.get("right"), method, 0, "right truncation"),
                left_truncation=_lookup(config.truncations.get("left"), method, 0, "left truncation"),
                interval_ends=interval_ends,
                minimum_cumul=config.minimum_cumul,
                window_length=config.sliding_window,
                mean_si=config.mean_si,
                std_si=config.std_si,
                n_sim=config.n_sim,
                rng=rng,
            )
            if len(result) == 0:
                continue
            fragments.append(result.assign(**labels)[RESULT_COLUMNS])
    return fragments


def iter_stratum_estimates(data: pd.DataFrame, config: EstimationConfig,
                           interval_ends, additional_interval_ends, rng) -> Iterator[pd.DataFrame]:
    """Yield the non-empty result fragments stratum by stratum."""
    for source in data["source"].unique():
        logger.info("Estimating Re for data source: %s", source)
        for region in data["region"].unique():
            logger.info("  Region: %s", region)
            region_interval_ends = get_interval_ends(interval_ends, region)

            for data_type in data["data_type"].unique():
                subset = data[(data["region"] == region)
                              & (data["source"] == source)
                              & (data["data_type"] == data_type)]
                if len(subset) == 0:
                    continue
                logger.info("    Data type: %s", data_type)

                all_interval_ends = add_custom_interval_ends(
                    region_interval_ends, additional_interval_ends, region, data_type
                )
                delays = config.delays.get(data_type)

                for replicate in subset["replicate"].unique():
                    subset_rep = subset[subset["replicate"] == replicate].sort_values("date", kind="stable")
                    yield from do_re_estimation(subset_rep, config, all_interval_ends, delays, rng=rng)


def do_all_re_estimations(data: pd.DataFrame, config: Optional[EstimationConfig] = None,
                          interval_ends=("2020-04-01",), additional_interval_ends=None,
                          rng=None) -> pd.DataFrame:
    """Re estimates for every source x region x data_type x replicate.

    'interval_ends' is an intervention table or a list of dates;
    'additional_interval_ends' holds custom ends per region and data type.
    """
    if config is None:
        config = EstimationConfig()
    if rng is None:
        rng = np.random.default_rng()
    if "replicate" not in data.columns:
        data = data.assign(replicate=0)

    fragments = list(iter_stratum_estimates(data, config, interval_ends,
                                            additional_interval_ends, rng))
    if not fragments:
        return pd.DataFrame(columns=RESULT_COLUMNS)
    return pd.concat(fragments, ignore_index=True)
