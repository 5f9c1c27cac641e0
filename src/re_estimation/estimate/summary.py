# src/re_estimation/estimate/summary.py
# Median over replicates of the long-form Re estimates
import pandas as pd

GROUP_COLUMNS = ["date", "country", "region", "data_type", "source", "estimate_type"]
SUMMARY_VARIABLES = ["R_mean", "R_highHPD", "R_lowHPD"]


def summarize_estimates(results: pd.DataFrame) -> pd.DataFrame:
    """Pivot `variable` wide and take the median across replicates.

    Returns one row per (country, region, source, data_type, estimate_type,
    date) with columns median_R_mean, median_R_highHPD, median_R_lowHPD.
    """
    out_columns = ["country", "region", "source", "data_type", "estimate_type", "date"] + [
        f"median_{v}" for v in SUMMARY_VARIABLES
    ]
    if len(results) == 0:
        return pd.DataFrame(columns=out_columns)

    # all-NaN statistics (no cases in a window) keep their column and row
    wide = (
        results.groupby(GROUP_COLUMNS + ["replicate", "variable"])["value"]
        .first()
        .unstack("variable")
        .reindex(columns=SUMMARY_VARIABLES)
        .reset_index()
    )

    summary = (
        wide.groupby(GROUP_COLUMNS)[SUMMARY_VARIABLES]
        .median()
        .add_prefix("median_")
        .reset_index()
    )
    return (
        summary[out_columns]
        .sort_values(["country", "region", "source", "data_type", "estimate_type", "date"])
        .reset_index(drop=True)
    )
