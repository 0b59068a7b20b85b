"""
SURVEY EXTRACTION MODULE FOR THE ROR GAZETTEER MATCHING PIPELINE

Reads the yearly household-survey files (Stata .dta), keeps the fields that
identify where each household was surveyed, and reduces them to one row per
distinct location and year.

Part of the EXTRACT stage.

Functions:
    - discover_survey_files: Find the survey file of every configured year
    - read_survey_file: Read location fields (codes + labels) from one file
    - extract_locations: Build the per-year location table
    - load_locations: Discover, read and extract in one call
    - survey_counts: Wide table of surveyed households per observatory/year
"""

from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from ror_gazetteer.io_paths import SURVEY_FILENAME
from ror_gazetteer.pipeline.transform.cleaning import add_normalized_names, as_text
from ror_gazetteer.qa import QASignals


# Source variable → location column. The observatory variable carries the
# observatory names as Stata value labels.
SURVEY_FIELDS: Dict[str, str] = {
    "j0": "observatory_code",
    "j1": "municipality_code",
    "j2": "municipality_raw",
    "j3": "village_code",
    "j4": "village_name",
    "j5": "site_code",
}
OBSERVATORY_VARIABLE = "j0"

LOCATION_COLUMNS = [
    "observatory_code",
    "observatory_name",
    "municipality_code",
    "municipality_raw",
    "municipality_norm",
    "village_code",
    "village_name",
    "site_code",
    "year",
]


def discover_survey_files(
    survey_dir: Path,
    years: Iterable[int],
    filename: str = SURVEY_FILENAME,
    qa_signals: Optional[QASignals] = None
) -> Dict[int, Path]:
    """
    Find the survey file of each year.

    Layout: <survey_dir>/<year>/<filename>. Years without a file are skipped
    (not an error) and reported.

    Args:
        survey_dir (Path): Root directory of the yearly survey folders
        years (Iterable[int]): Years to look for
        filename (str): File name inside each year folder
        qa_signals (QASignals, optional): Collector for skipped years

    Returns:
        Dict[int, Path]: Existing files keyed by year, in year order
    """
    found = {}
    skipped = []

    for year in sorted(years):
        path = Path(survey_dir) / str(year) / filename
        if path.is_file():
            found[year] = path
        else:
            skipped.append(year)

    if skipped:
        print(f"  ⚠️ No survey file for {len(skipped)} year(s): {', '.join(map(str, skipped))}")

    if qa_signals is not None:
        qa_signals.add("survey_years_found", len(found))
        qa_signals.add("survey_years_skipped", ", ".join(map(str, skipped)) or "none")

    return found


def read_survey_file(
    path: Path,
    fields: Mapping[str, str] = SURVEY_FIELDS,
    observatory_variable: str = OBSERVATORY_VARIABLE
) -> pd.DataFrame:
    """
    Read the location fields of one survey file.

    Codes are read without value-label conversion; the observatory name comes
    from the value labels of the observatory variable (or falls back to the
    code when the file has no labels). Every field is coerced to text. Fields
    absent from the file are absent from the result.

    Args:
        path (Path): Stata file
        fields (Mapping[str, str]): Source variable → output column
        observatory_variable (str): Variable whose labels name observatories

    Returns:
        pd.DataFrame: One row per household, text columns
    """
    coded = pd.read_stata(path, convert_categoricals=False)
    present = [var for var in fields if var in coded.columns]

    missing = [var for var in fields if var not in coded.columns]
    if missing:
        print(f"  ⚠️ {Path(path).name}: missing variables {', '.join(missing)}")

    df = pd.DataFrame({fields[var]: as_text(coded[var]) for var in present})

    if observatory_variable in present:
        labeled = pd.read_stata(path, columns=[observatory_variable])
        df["observatory_name"] = as_text(labeled[observatory_variable])

    return df


def extract_locations(
    frames_by_year: Mapping[int, pd.DataFrame],
    qa_signals: Optional[QASignals] = None
) -> pd.DataFrame:
    """
    Build the location table from per-year household frames.

    Adds the survey year, normalizes municipality names and collapses
    households into one row per full location key with their count
    (`n_records`). Rows with the same key but different village labels stay
    separate; the duplicate check downstream surfaces them.

    Args:
        frames_by_year (Mapping[int, pd.DataFrame]): Household frames by year
        qa_signals (QASignals, optional): QA collector

    Returns:
        pd.DataFrame: LOCATION_COLUMNS + n_records
    """
    print("\n[EXTRACTING SURVEY LOCATIONS]")

    frames = []
    for year, frame in frames_by_year.items():
        frame = frame.copy()
        frame["year"] = int(year)
        frames.append(frame)
        print(f"  → {year}: {len(frame)} records")
        if qa_signals is not None:
            qa_signals.add(f"records_{year}", len(frame))

    if not frames:
        print("  ⚠️ No survey records to extract")
        return pd.DataFrame(columns=LOCATION_COLUMNS + ["n_records"])

    households = pd.concat(frames, ignore_index=True)

    # Absent fields become empty columns
    for col in LOCATION_COLUMNS:
        if col not in households.columns and col not in ("municipality_norm", "year"):
            households[col] = pd.Series(pd.NA, index=households.index, dtype="string")

    households["observatory_name"] = households["observatory_name"].fillna(
        households["observatory_code"]
    )

    households = add_normalized_names(households, "municipality_raw", "municipality_norm")

    locations = (
        households
        .groupby(LOCATION_COLUMNS, dropna=False, sort=True)
        .size()
        .reset_index(name="n_records")
    )

    print(f"✓ Extracted {len(locations)} location-years from {len(households)} records")

    if qa_signals is not None:
        qa_signals.add("records_read", len(households))
        qa_signals.add("location_years", len(locations))
        qa_signals.add("distinct_municipality_names", locations["municipality_raw"].nunique())

    return locations


def load_locations(
    survey_dir: Path,
    years: Iterable[int],
    qa_signals: Optional[QASignals] = None
) -> pd.DataFrame:
    """Discover, read and extract every available survey year."""
    files = discover_survey_files(survey_dir, years, qa_signals=qa_signals)

    frames = {}
    for year, path in files.items():
        frames[year] = read_survey_file(path)

    return extract_locations(frames, qa_signals)


def survey_counts(locations: pd.DataFrame) -> pd.DataFrame:
    """
    Count surveyed households per observatory and year.

    Args:
        locations (pd.DataFrame): Output of extract_locations

    Returns:
        pd.DataFrame: One row per observatory, one column per year
    """
    counts = (
        locations
        .groupby(["observatory_code", "observatory_name", "year"], dropna=False)["n_records"]
        .sum()
        .unstack("year", fill_value=0)
        .reset_index()
    )
    counts.columns.name = None
    counts.columns = [str(col) for col in counts.columns]
    return counts
