"""
MANUAL OVERRIDE MODULE FOR THE ROR GAZETTEER MATCHING PIPELINE

Round-trips the automatic matches through a spreadsheet reviewed by an
analyst, then overlays the analyst's corrections on the automatic matches.

Part of the TRANSFORM stage.

Functions:
    - build_review_sheet: Candidates ranked for review, with blank correction columns
    - read_spreadsheet / write_spreadsheet: .xlsx (openpyxl) or .csv IO
    - load_corrections: Read the corrected spreadsheet
    - apply_corrections: Overlay corrections on the automatic matches
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd

from ror_gazetteer.pipeline.transform.cleaning import normalize_name
from ror_gazetteer.pipeline.transform.matching import (
    CANDIDATE_KEY,
    DEFAULT_REVIEW_THRESHOLD,
)

CORRECTION_COLUMNS = ["corrected_name", "corrected_gid", "correction_source"]
SCORE_COLUMNS = {"distance": "Int64", "relative_distance": "float64", "similarity": "Int64"}


class OverrideReport:
    """Track what the correction overlay did."""

    def __init__(self):
        self.corrections_loaded = 0
        self.corrections_applied = 0
        self.gids_resolved = 0
        self.unknown_keys = []
        self.unresolved_names = []

    def generate_report(self) -> str:
        """Generate formatted override report."""
        report = ["\n" + "="*60]
        report.append("MANUAL OVERRIDE REPORT")
        report.append("="*60)
        report.append(f"  Corrections loaded: {self.corrections_loaded}")
        report.append(f"  Corrections applied: {self.corrections_applied}")
        report.append(f"  Identifiers resolved from GADM: {self.gids_resolved}")

        if self.unknown_keys:
            report.append(f"\n[CORRECTIONS WITHOUT CANDIDATE] ({len(self.unknown_keys)} total)")
            report.append("  Ignored, no match candidate has this key:")
            for key in self.unknown_keys[:10]:
                report.append(f"    - {key['municipality_raw']} ({key['observatory_code']})")
            if len(self.unknown_keys) > 10:
                report.append(f"    ... and {len(self.unknown_keys) - 10} more")

        if self.unresolved_names:
            report.append(f"\n[CORRECTED NAMES WITHOUT UNIQUE GADM UNIT] ({len(self.unresolved_names)} total)")
            for name in self.unresolved_names[:10]:
                report.append(f"    - {name}")

        report.append("="*60 + "\n")
        return "\n".join(report)


def build_review_sheet(
    candidates: pd.DataFrame,
    review_threshold: float = DEFAULT_REVIEW_THRESHOLD
) -> pd.DataFrame:
    """
    Prepare the match candidates for manual review.

    Rows are ranked by relative distance, worst first, with empty names on
    top. The correction columns are left blank: a blank cell read back means
    "no correction supplied".

    Args:
        candidates (pd.DataFrame): Output of match_municipalities
        review_threshold (float): Relative distance flagged for review

    Returns:
        pd.DataFrame: Candidates + needs_review + CORRECTION_COLUMNS
    """
    sheet = candidates.copy()
    sheet["needs_review"] = (
        (sheet["match_status"] == "empty")
        | (sheet["relative_distance"] > review_threshold)
    )
    sheet = sheet.sort_values(
        ["relative_distance", "observatory_code", "municipality_raw"],
        ascending=[False, True, True],
        na_position="first",
        kind="mergesort",
    ).reset_index(drop=True)

    for col in CORRECTION_COLUMNS:
        sheet[col] = pd.Series(pd.NA, index=sheet.index, dtype="string")

    return sheet


def write_spreadsheet(df: pd.DataFrame, path: Union[str, Path]):
    """Write a table as .xlsx (openpyxl) or, for any other suffix, CSV."""
    path = Path(path)
    if path.suffix.lower() == ".xlsx":
        df.to_excel(path, index=False, engine="openpyxl")
    else:
        df.to_csv(path, index=False)


def read_spreadsheet(path: Union[str, Path]) -> pd.DataFrame:
    """Read a spreadsheet written by write_spreadsheet, every cell as text."""
    path = Path(path)
    if path.suffix.lower() == ".xlsx":
        return pd.read_excel(path, dtype=str, engine="openpyxl")
    return pd.read_csv(path, dtype=str)


def _blank_to_na(series: pd.Series) -> pd.Series:
    text = series.astype("string").str.strip()
    return text.mask(text == "")


def load_corrections(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read the analyst's corrections.

    Only rows with a non-blank corrected name or identifier are kept. When a
    key is corrected twice, the last row wins.

    Args:
        path (str | Path): Edited review sheet

    Returns:
        pd.DataFrame: CANDIDATE_KEY + CORRECTION_COLUMNS

    Raises:
        FileNotFoundError: If the file does not exist (review not done yet)
        ValueError: If key or correction columns are missing
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Corrections file not found: {path}")

    df = read_spreadsheet(path)

    required = CANDIDATE_KEY + ["corrected_name", "corrected_gid"]
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"{path.name} is missing columns: {', '.join(missing)}")

    if "correction_source" not in df.columns:
        df["correction_source"] = pd.NA

    corrections = df[CANDIDATE_KEY + CORRECTION_COLUMNS].copy()
    for col in corrections.columns:
        corrections[col] = _blank_to_na(corrections[col])

    supplied = corrections["corrected_name"].notna() | corrections["corrected_gid"].notna()
    corrections = corrections[supplied]

    duplicated = corrections.duplicated(CANDIDATE_KEY, keep="last")
    if duplicated.any():
        print(f"  ⚠️ {duplicated.sum()} corrections overridden by a later row with the same key")
        corrections = corrections[~duplicated]

    print(f"  → Loaded {len(corrections)} corrections from {path.name}")
    return corrections.reset_index(drop=True)


def _resolve_gids(names: pd.Series, gazetteer: pd.DataFrame) -> pd.Series:
    """Identifier of the single GADM unit with each normalized name (else NA)."""
    unique = gazetteer.drop_duplicates("gadm_name_norm", keep=False)
    lookup = dict(zip(unique["gadm_name_norm"], unique["gadm_gid"]))
    return names.map(lambda name: lookup.get(normalize_name(name), pd.NA)).astype("string")


def apply_corrections(
    candidates: pd.DataFrame,
    corrections: pd.DataFrame,
    gazetteer: Optional[pd.DataFrame] = None
) -> Tuple[pd.DataFrame, OverrideReport]:
    """
    Overlay corrections on the automatic matches.

    A correction replaces match_name / match_gid where its corrected value is
    non-blank and blanks the distance scores, which no longer apply. A
    corrected name without an identifier (none supplied, none resolved)
    clears match_gid rather than keep the rejected unit. Other
    candidates pass through unchanged. Corrections whose key has no candidate
    are ignored and listed in the report. Applying the same corrections again
    gives the same result.

    Args:
        candidates (pd.DataFrame): Output of match_municipalities
        corrections (pd.DataFrame): Output of load_corrections
        gazetteer (pd.DataFrame, optional): Used to fill match_gid when only
            a corrected name was supplied

    Returns:
        Tuple[pd.DataFrame, OverrideReport]:
            - Candidates + match_source ('manual'/'automatic') + correction_source
            - OverrideReport
    """
    print("\n[APPLYING MANUAL CORRECTIONS]")

    report = OverrideReport()
    report.corrections_loaded = len(corrections)

    base = candidates.drop(columns=["match_source", "correction_source"], errors="ignore")
    corrections = corrections[CANDIDATE_KEY + CORRECTION_COLUMNS].copy()

    for col in CANDIDATE_KEY:
        base[col] = base[col].astype("string")
        corrections[col] = corrections[col].astype("string")

    known = corrections.merge(base[CANDIDATE_KEY], on=CANDIDATE_KEY, how="left", indicator=True)
    unknown = known[known["_merge"] == "left_only"]
    report.unknown_keys = unknown[CANDIDATE_KEY].to_dict("records")
    if report.unknown_keys:
        print(f"  ⚠️ {len(report.unknown_keys)} corrections match no candidate and were ignored")

    merged = base.merge(corrections, on=CANDIDATE_KEY, how="left")

    if gazetteer is not None:
        needs_gid = merged["corrected_name"].notna() & merged["corrected_gid"].isna()
        if needs_gid.any():
            resolved = _resolve_gids(merged.loc[needs_gid, "corrected_name"], gazetteer)
            merged.loc[needs_gid, "corrected_gid"] = resolved
            report.gids_resolved = int(resolved.notna().sum())
            unresolved = needs_gid & merged["corrected_gid"].isna()
            report.unresolved_names = merged.loc[unresolved, "corrected_name"].tolist()

    has_name = merged["corrected_name"].notna()
    has_gid = merged["corrected_gid"].notna()
    corrected = has_name | has_gid

    merged["match_name"] = merged["match_name"].astype("string")
    merged["match_gid"] = merged["match_gid"].astype("string")
    merged.loc[has_name, "match_name"] = merged.loc[has_name, "corrected_name"]
    merged.loc[has_gid, "match_gid"] = merged.loc[has_gid, "corrected_gid"]
    merged.loc[has_name & ~has_gid, "match_gid"] = pd.NA

    for col, dtype in SCORE_COLUMNS.items():
        if col in merged.columns:
            merged[col] = merged[col].astype(dtype)
            merged.loc[corrected, col] = np.nan if dtype == "float64" else pd.NA
    merged["match_source"] = np.where(corrected.to_numpy(dtype=bool), "manual", "automatic")

    report.corrections_applied = int(corrected.sum())
    print(f"  ✓ Applied {report.corrections_applied} corrections")

    result = merged.drop(columns=["corrected_name", "corrected_gid"])
    return result, report
