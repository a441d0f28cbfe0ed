"""
Loading utilities for long-format assessment score tables.
"""

import logging
from pathlib import Path

import pandas as pd

from copula_analysis.core.constants import (
    COLUMN_ALIASES,
    REQUIRED_COLUMNS,
    STUDENT_ID_COLUMN,
    YEAR_COLUMN,
)
from copula_analysis.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def normalize_score_table(df: pd.DataFrame) -> pd.DataFrame:
    """Rename known column aliases and coerce column types.

    Upper-case export names (ID, GRADE, YEAR, CONTENT_AREA, SCALE_SCORE)
    are mapped to their canonical lower-case names.

    Raises:
        ConfigurationError: If any required column is missing.
    """
    renames = {
        col: COLUMN_ALIASES[col]
        for col in df.columns
        if col in COLUMN_ALIASES and COLUMN_ALIASES[col] not in df.columns
    }
    df = df.rename(columns=renames)

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ConfigurationError(
            f"Score table is missing required columns: {missing}"
        )

    out = df.loc[:, list(REQUIRED_COLUMNS)].copy()
    out[STUDENT_ID_COLUMN] = out[STUDENT_ID_COLUMN].astype(str)
    # Years may come in as "2013" or "2013_2014"; keep the leading year
    out[YEAR_COLUMN] = (
        out[YEAR_COLUMN].astype(str).str.extract(r"^(\d{4})")[0].astype(int)
    )
    out["grade"] = pd.to_numeric(out["grade"], errors="raise").astype(int)
    out["scale_score"] = pd.to_numeric(out["scale_score"], errors="coerce")
    out["content_area"] = out["content_area"].astype(str)
    return out


def load_score_table(path: Path) -> pd.DataFrame:
    """Load a long-format score table from CSV or Parquet.

    Expected columns:
        - student_id (or ID)
        - grade (or GRADE)
        - year (or YEAR)
        - content_area (or CONTENT_AREA)
        - scale_score (or SCALE_SCORE)

    Raises:
        ConfigurationError: If the file type is unsupported or required
            columns are missing.
    """
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path)
    elif suffix in (".parquet", ".pq"):
        df = pd.read_parquet(path)
    else:
        raise ConfigurationError(
            f"Unsupported score table format '{suffix}' for {path}"
        )

    table = normalize_score_table(df)
    logger.info(f"Loaded {len(table)} score rows from {path}")
    return table
