"""
MERGE MODULE FOR THE ROR GAZETTEER MATCHING PIPELINE

Joins the corrected matches back onto every survey location and checks the
result for duplicate natural keys.

Part of the TRANSFORM stage.
"""

from typing import Optional, Sequence

import pandas as pd

from ror_gazetteer.pipeline.transform.matching import CANDIDATE_KEY

NATURAL_KEY = ["year", "observatory_code", "municipality_raw", "village_code", "site_code"]

HIERARCHY_COLUMNS = ["district_name", "region_name", "province_name"]


def attach_hierarchy(candidates: pd.DataFrame, gazetteer: pd.DataFrame) -> pd.DataFrame:
    """
    Add the parent district, region and province of each matched unit.

    Args:
        candidates (pd.DataFrame): Corrected match candidates
        gazetteer (pd.DataFrame): Output of load_gazetteer

    Returns:
        pd.DataFrame: candidates + HIERARCHY_COLUMNS (missing when the
            identifier is not in the gazetteer)
    """
    hierarchy = (
        gazetteer[["gadm_gid"] + HIERARCHY_COLUMNS]
        .drop_duplicates("gadm_gid")
        .rename(columns={"gadm_gid": "match_gid"})
    )
    hierarchy["match_gid"] = hierarchy["match_gid"].astype("string")

    df = candidates.drop(columns=HIERARCHY_COLUMNS, errors="ignore").copy()
    df["match_gid"] = df["match_gid"].astype("string")

    df = df.merge(hierarchy, on="match_gid", how="left")

    unknown = df["match_gid"].notna() & df["district_name"].isna() & df["region_name"].isna()
    if unknown.any():
        print(f"  ⚠️ {unknown.sum()} matched identifiers not found in the gazetteer")

    return df


def merge_matches(locations: pd.DataFrame, candidates: pd.DataFrame) -> pd.DataFrame:
    """
    Left-join the match candidates onto every location record.

    Every location is kept; locations without a candidate get missing match
    fields.

    Args:
        locations (pd.DataFrame): Output of extract_locations
        candidates (pd.DataFrame): Corrected (and hierarchy-enriched) matches

    Returns:
        pd.DataFrame: locations + match columns
    """
    print("\n[MERGING MATCHES ONTO LOCATIONS]")

    left = locations.copy()
    right = candidates.drop(
        columns=[c for c in ("observatory_name", "municipality_norm") if c in candidates.columns]
    ).copy()

    for col in CANDIDATE_KEY:
        left[col] = left[col].astype("string")
        right[col] = right[col].astype("string")

    merged = left.merge(right, on=CANDIDATE_KEY, how="left")

    matched = merged["match_name"].notna().sum()
    print(f"  ✓ {matched}/{len(merged)} location-years carry a GADM match")
    if len(merged) != len(locations):
        print(f"  ⚠️ Merge changed the row count: {len(locations)} → {len(merged)}")

    return merged


def find_duplicates(
    df: pd.DataFrame,
    key: Sequence[str] = NATURAL_KEY,
    stage: Optional[str] = None
) -> pd.DataFrame:
    """
    Rows sharing a natural key with a row that differs elsewhere.

    Exact copies of a row are not duplicates in this sense and are ignored;
    every row of a conflicting group is returned.

    Args:
        df (pd.DataFrame): Table to check
        key (Sequence[str]): Natural key columns
        stage (str, optional): Label stored in a 'stage' column

    Returns:
        pd.DataFrame: Conflicting rows ordered by key
    """
    key = list(key)
    distinct = df.drop_duplicates()
    conflicts = distinct[distinct.duplicated(key, keep=False)]
    conflicts = conflicts.sort_values(key, kind="mergesort").reset_index(drop=True)

    if stage is not None:
        conflicts.insert(0, "stage", stage)

    return conflicts


def duplicate_report(
    before: pd.DataFrame,
    after: pd.DataFrame,
    key: Sequence[str] = NATURAL_KEY
) -> pd.DataFrame:
    """
    Duplicate natural keys before and after the merge, in one table.

    Args:
        before (pd.DataFrame): Locations before merging
        after (pd.DataFrame): Locations after merging
        key (Sequence[str]): Natural key columns

    Returns:
        pd.DataFrame: find_duplicates rows with stage 'pre_merge'/'post_merge'
    """
    print("\n[CHECKING DUPLICATE KEYS]")

    pre = find_duplicates(before, key, "pre_merge")
    post = find_duplicates(after, key, "post_merge")

    print(f"  → Pre-merge conflicting rows: {len(pre)}")
    print(f"  → Post-merge conflicting rows: {len(post)}")
    if len(post) > len(pre):
        print("  ⚠️ The merge introduced duplicate keys; check corrections for repeated keys")

    return pd.concat([pre, post], ignore_index=True)
