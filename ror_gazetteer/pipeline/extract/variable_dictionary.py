"""
VARIABLE DICTIONARY BUILDER

Lists the variables of every yearly survey file with their Stata labels, so
analysts can see which questions exist in which year.
"""

from pathlib import Path
from typing import Mapping

import pandas as pd


def read_variable_labels(path: Path) -> pd.DataFrame:
    """Variable names and labels of one Stata file, in file order."""
    with pd.read_stata(path, iterator=True) as reader:
        labels = reader.variable_labels()

    return pd.DataFrame({
        "variable": list(labels.keys()),
        "label": list(labels.values()),
    })


def build_variable_dictionary(files_by_year: Mapping[int, Path]) -> pd.DataFrame:
    """
    One row per (year, variable) over all survey files.

    Args:
        files_by_year (Mapping[int, Path]): Output of discover_survey_files

    Returns:
        pd.DataFrame: year, file, position, variable, label
    """
    print("\n[BUILDING VARIABLE DICTIONARY]")

    frames = []
    for year, path in files_by_year.items():
        labels = read_variable_labels(path)
        labels.insert(0, "position", range(1, len(labels) + 1))
        labels.insert(0, "file", Path(path).name)
        labels.insert(0, "year", int(year))
        frames.append(labels)
        print(f"  → {year}: {len(labels)} variables")

    if not frames:
        return pd.DataFrame(columns=["year", "file", "position", "variable", "label"])

    dictionary = pd.concat(frames, ignore_index=True)
    dictionary["label"] = dictionary["label"].fillna("").astype(str)

    print(f"✓ Dictionary: {len(dictionary)} rows, "
          f"{dictionary['variable'].nunique()} distinct variables")
    return dictionary
