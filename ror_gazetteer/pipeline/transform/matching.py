"""
MATCHING MODULE FOR THE ROR GAZETTEER MATCHING PIPELINE

Handles approximate matching of survey municipality names to GADM units and
generates match quality reports.

Part of the TRANSFORM stage.

Functions:
    - levenshtein_matrix: Edit distance between every query and reference
    - nearest_references: Nearest reference per query (stable argmin)
    - match_municipalities: Build match candidates for the survey locations
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from rapidfuzz import process
from rapidfuzz.distance import Levenshtein
from thefuzz import fuzz


# Relative distance (percent of the query length) above which a match is
# flagged for manual review
DEFAULT_REVIEW_THRESHOLD = 20.0

CANDIDATE_KEY = ["observatory_code", "municipality_raw"]

CANDIDATE_COLUMNS = [
    "observatory_code",
    "observatory_name",
    "municipality_raw",
    "municipality_norm",
    "match_name",
    "match_gid",
    "distance",
    "relative_distance",
    "similarity",
    "match_status",
]


class MatchReport:
    """Track and report on matching quality metrics."""

    def __init__(self, review_threshold: float = DEFAULT_REVIEW_THRESHOLD):
        self.review_threshold = review_threshold
        self.total_candidates = 0
        self.exact_matches = 0
        self.approximate_matches = 0
        self.empty_names = []
        self.low_confidence_matches = []
        self.relative_distances = []

    def add_match(
        self,
        observatory: str,
        municipality: str,
        status: str,
        match_name: Optional[str] = None,
        relative_distance: Optional[float] = None
    ):
        """Record a match attempt."""
        self.total_candidates += 1

        if status == "empty":
            self.empty_names.append({
                "observatory_code": observatory,
                "municipality_raw": municipality,
            })
            return

        self.relative_distances.append(relative_distance)
        if status == "exact":
            self.exact_matches += 1
            return

        self.approximate_matches += 1
        if relative_distance > self.review_threshold:
            self.low_confidence_matches.append({
                "observatory_code": observatory,
                "municipality_raw": municipality,
                "match_name": match_name,
                "relative_distance": relative_distance,
            })

    def get_exact_rate(self) -> float:
        """Calculate percentage of candidates matched without any edit."""
        if self.total_candidates == 0:
            return 0.0
        return (self.exact_matches / self.total_candidates) * 100

    def get_review_rate(self) -> float:
        """Calculate percentage of candidates flagged for review."""
        if self.total_candidates == 0:
            return 0.0
        return (len(self.low_confidence_matches) / self.total_candidates) * 100

    def get_distance_distribution(self) -> Dict[str, int]:
        """Get distribution of relative distances by range."""
        if not self.relative_distances:
            return {}

        d = self.relative_distances
        return {
            "Exact (0%)": sum(1 for r in d if r == 0),
            "Close (<10%)": sum(1 for r in d if 0 < r < 10),
            "Fair (10-20%)": sum(1 for r in d if 10 <= r < 20),
            "Weak (20-35%)": sum(1 for r in d if 20 <= r < 35),
            "Poor (>=35%)": sum(1 for r in d if r >= 35),
        }

    def generate_report(self) -> str:
        """Generate formatted match quality report."""
        report = ["\n" + "="*60]
        report.append("MATCH QUALITY REPORT")
        report.append("="*60)

        report.append("\n[MATCHING STATISTICS]")
        report.append(f"  Candidates (observatory x municipality): {self.total_candidates}")
        report.append(f"  Exact matches: {self.exact_matches}")
        report.append(f"  Approximate matches: {self.approximate_matches}")
        report.append(f"  Empty names: {len(self.empty_names)}")
        report.append(f"  Exact rate: {self.get_exact_rate():.1f}%")
        report.append(f"  Review threshold: {self.review_threshold:.1f}% of name length")

        report.append("\n[RELATIVE DISTANCE DISTRIBUTION]")
        for category, count in self.get_distance_distribution().items():
            share = (count / self.total_candidates * 100) if self.total_candidates > 0 else 0
            report.append(f"  {category}: {count} ({share:.1f}%)")

        if self.low_confidence_matches:
            report.append(f"\n[LOW CONFIDENCE MATCHES] ({len(self.low_confidence_matches)} total)")
            report.append("  Top 5 matches to review:")
            worst = sorted(self.low_confidence_matches, key=lambda x: -x["relative_distance"])
            for match in worst[:5]:
                report.append(
                    f"    - {match['municipality_raw']} ({match['observatory_code']}) "
                    f"→ {match['match_name']}: {match['relative_distance']:.1f}%"
                )

        if self.empty_names:
            report.append(f"\n[EMPTY MUNICIPALITY NAMES] ({len(self.empty_names)} total)")
            for empty in self.empty_names[:10]:
                report.append(f"    - observatory {empty['observatory_code']}")
            if len(self.empty_names) > 10:
                report.append(f"    ... and {len(self.empty_names) - 10} more")

        report.append("="*60 + "\n")
        return "\n".join(report)

    def save_low_confidence(self, output_path: str):
        """Save low confidence matches for manual review."""
        if not self.low_confidence_matches:
            return

        df = pd.DataFrame(self.low_confidence_matches)
        df = df.sort_values("relative_distance", ascending=False)
        df.to_csv(output_path, index=False)
        print(f"  → Saved {len(df)} low-confidence matches to {output_path}")


def levenshtein_matrix(queries: Sequence[str], references: Sequence[str]) -> np.ndarray:
    """
    Edit distance between every query (rows) and every reference (columns).

    Args:
        queries (Sequence[str]): Normalized query names
        references (Sequence[str]): Normalized reference names

    Returns:
        np.ndarray: Integer matrix of shape (len(queries), len(references))
    """
    if len(queries) == 0 or len(references) == 0:
        return np.zeros((len(queries), len(references)), dtype=np.int32)

    return process.cdist(
        list(queries),
        list(references),
        scorer=Levenshtein.distance,
        dtype=np.int32,
    )


def nearest_references(queries: Sequence[str], references: Sequence[str]) -> pd.DataFrame:
    """
    Find the nearest reference of every query.

    Ties are broken by reference order: the first reference at the minimum
    distance wins. Empty queries get no match (missing values) instead of a
    relative distance.

    Args:
        queries (Sequence[str]): Normalized query names
        references (Sequence[str]): Normalized reference names

    Returns:
        pd.DataFrame: Columns query, ref_index, match_name, distance,
            relative_distance, one row per query in input order

    Raises:
        ValueError: If there are no references
    """
    if len(references) == 0:
        raise ValueError("Cannot match against an empty reference list")

    queries = list(queries)
    matrix = levenshtein_matrix(queries, references)

    # np.argmin returns the first occurrence of the minimum
    best = matrix.argmin(axis=1) if len(queries) else np.array([], dtype=int)

    rows = []
    for i, query in enumerate(queries):
        if not query:
            rows.append({
                "query": query,
                "ref_index": pd.NA,
                "match_name": pd.NA,
                "distance": pd.NA,
                "relative_distance": np.nan,
            })
            continue

        j = int(best[i])
        distance = int(matrix[i, j])
        rows.append({
            "query": query,
            "ref_index": j,
            "match_name": references[j],
            "distance": distance,
            "relative_distance": 100.0 * distance / len(query),
        })

    result = pd.DataFrame(rows, columns=["query", "ref_index", "match_name",
                                         "distance", "relative_distance"])
    result["ref_index"] = result["ref_index"].astype("Int64")
    result["distance"] = result["distance"].astype("Int64")
    result["relative_distance"] = result["relative_distance"].astype(float)
    return result


def match_municipalities(
    locations: pd.DataFrame,
    gazetteer: pd.DataFrame,
    review_threshold: float = DEFAULT_REVIEW_THRESHOLD
) -> Tuple[pd.DataFrame, MatchReport]:
    """
    Match every (observatory, municipality) of the survey to a GADM unit.

    Distances are computed once per distinct normalized name and shared by
    every observatory reporting that name.

    Args:
        locations (pd.DataFrame): Output of extract_locations
        gazetteer (pd.DataFrame): Output of load_gazetteer
        review_threshold (float): Relative distance flagged for review

    Returns:
        Tuple[pd.DataFrame, MatchReport]:
            - Match candidates (CANDIDATE_COLUMNS)
            - MatchReport object with quality metrics
    """
    print("\n[MATCHING MUNICIPALITIES TO GADM]")

    report = MatchReport(review_threshold)

    keys = (
        locations[["observatory_code", "observatory_name", "municipality_raw", "municipality_norm"]]
        .drop_duplicates(CANDIDATE_KEY)
        .reset_index(drop=True)
    )
    names: List[str] = sorted(keys["municipality_norm"].unique())
    references = gazetteer["gadm_name_norm"].tolist()

    print(f"  Matching {len(names)} distinct names against {len(references)} units...")

    nearest = nearest_references(names, references)

    gids = gazetteer["gadm_gid"].reset_index(drop=True)
    nearest["match_gid"] = [
        gids.iloc[j] if pd.notna(j) else pd.NA for j in nearest["ref_index"]
    ]
    # Report the original GADM spelling rather than its normalized form
    names_raw = gazetteer["gadm_name"].reset_index(drop=True)
    nearest["match_name"] = [
        names_raw.iloc[j] if pd.notna(j) else pd.NA for j in nearest["ref_index"]
    ]
    nearest["similarity"] = [
        fuzz.ratio(q, references[j]) if pd.notna(j) else pd.NA
        for q, j in zip(nearest["query"], nearest["ref_index"])
    ]

    candidates = keys.merge(
        nearest.drop(columns="ref_index").rename(columns={"query": "municipality_norm"}),
        on="municipality_norm",
        how="left",
    )

    is_empty = (candidates["municipality_norm"] == "").to_numpy(dtype=bool)
    is_exact = (candidates["distance"].fillna(-1) == 0).to_numpy(dtype=bool)
    candidates["match_status"] = np.where(
        is_empty, "empty", np.where(is_exact, "exact", "approximate")
    )
    candidates["similarity"] = candidates["similarity"].astype("Int64")
    candidates = candidates[CANDIDATE_COLUMNS]

    for row in candidates.itertuples(index=False):
        report.add_match(
            row.observatory_code,
            row.municipality_raw,
            row.match_status,
            row.match_name,
            row.relative_distance,
        )

    print(f"  ✓ Exact matches: {report.exact_matches}/{report.total_candidates}")
    print(f"  ✓ Flagged for review: {len(report.low_confidence_matches)}")

    return candidates, report
