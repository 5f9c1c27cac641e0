# src/re_estimation/estimate/intervals.py
# Interval end dates for 'step' estimation: intervention dates per region
# plus custom interval ends per region / data type.
import datetime
from typing import Iterable, List

import pandas as pd

# Swiss cantons and greater regions (and Liechtenstein) share the national dates
SWISS_REGIONS = (
    "LIE", "AG", "AI", "AR", "BE", "BL", "BS", "FR", "GE", "GL",
    "GR", "grR Central Switzerland", "grR Eastern Switzerland",
    "grR Espace Mittelland", "grR Lake Geneva Region", "grR Northwestern Switzerland",
    "grR Ticino", "grR Zurich", "JU", "LU", "NE", "NW", "OW", "SG",
    "SH", "SO", "SZ", "TG", "TI", "UR", "VD", "VS", "ZG", "ZH",
)
AGGREGATE_REGION = "CHE"
SENTINEL_DATE = "9999-01-01"
EXCLUDED_MEASURE = "testing"
WILDCARD_DATA_TYPE = "all"


def normalize_region(region, regions=SWISS_REGIONS):
    return AGGREGATE_REGION if region in regions else region


def _is_sentinel(dates: pd.Series) -> pd.Series:
    return dates.astype(str).str.startswith(SENTINEL_DATE)


def get_interval_ends(interval_ends, region, regions=SWISS_REGIONS, today=None) -> List[pd.Timestamp]:
    """Interval end dates for a region.

    interval_ends is either an intervention table (columns region, measure,
    type, date) or a plain list of dates used as given. Estimation intervals
    start on interval_end + 1, so intervention 'start' dates move back one day.
    Falls back to [today] when nothing is left.
    """
    if isinstance(interval_ends, pd.DataFrame):
        region = normalize_region(region, regions)
        table = interval_ends[
            (interval_ends["region"] == region)
            & (interval_ends["measure"] != EXCLUDED_MEASURE)
            & ~_is_sentinel(interval_ends["date"])
        ]
        dates = pd.to_datetime(table["date"])
        shifted = dates.where(table["type"] == "end", dates - pd.Timedelta(days=1))
        region_interval_ends = sorted(set(shifted))
    else:
        region_interval_ends = sorted(set(pd.to_datetime(list(interval_ends))))

    if len(region_interval_ends) < 1:
        region_interval_ends = [pd.Timestamp(today or datetime.date.today())]
    return region_interval_ends


def add_custom_interval_ends(region_interval_ends: Iterable, additional_interval_ends,
                             region, data_type, regions=SWISS_REGIONS) -> List[pd.Timestamp]:
    """Merge custom interval ends (columns region, data_type, date) for a stratum."""
    region_interval_ends = list(pd.to_datetime(list(region_interval_ends)))
    if additional_interval_ends is None or len(additional_interval_ends) == 0:
        return sorted(set(region_interval_ends))

    region = normalize_region(region, regions)
    extra = additional_interval_ends[
        (additional_interval_ends["region"] == region)
        & ((additional_interval_ends["data_type"] == data_type)
           | (additional_interval_ends["data_type"] == WILDCARD_DATA_TYPE))
    ]
    return sorted(set(region_interval_ends) | set(pd.to_datetime(extra["date"])))
