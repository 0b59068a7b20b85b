"""
CLEANING MODULE FOR THE ROR GAZETTEER MATCHING PIPELINE

Handles text coercion and place-name normalization shared by the survey
extractor and the gazetteer loader.
Part of the TRANSFORM stage.

Functions:
    - normalize_name: Standardize place names for matching
    - as_text: Coerce a column to a uniform text representation
    - add_normalized_names: Add a normalized copy of a name column
"""

import re

import pandas as pd


# CONFIGURATION
SEPARATORS = re.compile(r"[/\-]")
WHITESPACE = re.compile(r"\s+")
TRAILING_SUFFIX = re.compile(r"(?:\s+CENTRE)+$")


def normalize_name(name) -> str:
    """
    Standardize place names for matching survey names against GADM.

    Steps, in this order:
    1. Uppercase
    2. Replace "/" and "-" separators with a space
    3. Collapse whitespace
    4. Strip trailing " CENTRE" (every repetition)

    Uppercasing comes first so that a lowercase "centre" suffix is removed
    too. The result is a fixed point: normalizing twice changes nothing.

    Args:
        name: Original place name (non-strings give "")

    Returns:
        str: Normalized place name

    Examples:
        >>> normalize_name("Feramanga-Avaratra")
        'FERAMANGA AVARATRA'
        >>> normalize_name("Ambano centre")
        'AMBANO'
    """
    if not isinstance(name, str):
        return ""

    name = name.upper()
    name = SEPARATORS.sub(" ", name)
    name = WHITESPACE.sub(" ", name).strip()
    name = TRAILING_SUFFIX.sub("", name)

    return name


def as_text(series: pd.Series) -> pd.Series:
    """
    Coerce a column to pandas' string dtype.

    Integral floats ("12.0", which Stata codes often become) are rendered
    without the decimal part. Missing values stay <NA>; surrounding
    whitespace is stripped and empty strings become <NA>.
    """
    if pd.api.types.is_float_dtype(series):
        non_null = series.dropna()
        if (non_null == non_null.round()).all():
            series = series.astype("Int64")

    text = series.astype("string").str.strip()
    return text.mask(text == "")


def add_normalized_names(
    df: pd.DataFrame,
    source_col: str,
    target_col: str
) -> pd.DataFrame:
    """
    Add a normalized copy of a name column.

    Args:
        df (pd.DataFrame): Table holding the raw names
        source_col (str): Column with the raw names
        target_col (str): Column to create

    Returns:
        pd.DataFrame: Copy of df with the normalized column

    QA Signal:
        Prints how many distinct raw names collapse to fewer normalized ones
    """
    df = df.copy()
    df[target_col] = df[source_col].apply(normalize_name)

    raw_count = df[source_col].nunique()
    norm_count = df[target_col].nunique()
    print(f"  → Normalized {raw_count} distinct names into {norm_count} ({source_col})")

    empty = (df[target_col] == "").sum()
    if empty > 0:
        print(f"  ⚠️ {empty} rows have an empty name after normalization")

    return df
