import pandas as pd

from ror_gazetteer.pipeline.transform.merge import (
    attach_hierarchy,
    duplicate_report,
    find_duplicates,
    merge_matches,
)


def make_locations(rows):
    return pd.DataFrame(rows, columns=[
        "year", "observatory_code", "observatory_name", "municipality_raw",
        "municipality_norm", "village_code", "village_name", "site_code", "n_records",
    ])


def test_merge_keeps_every_location(gazetteer):
    locations = make_locations([
        (1995, "1", "Antalaha", "Ambano", "AMBANO", "1", "Vohitra", "1", 12),
        (1996, "1", "Antalaha", "Ambano", "AMBANO", "1", "Vohitra", "1", 10),
        (1995, "2", "Marovoay", "Unknown", "UNKNOWN", "3", "Ankazo", "1", 8),
    ])
    candidates = pd.DataFrame({
        "observatory_code": ["1"],
        "observatory_name": ["Antalaha"],
        "municipality_raw": ["Ambano"],
        "municipality_norm": ["AMBANO"],
        "match_name": ["Ambano"],
        "match_gid": ["MDG.2.1.1.1_1"],
        "match_source": ["automatic"],
    })

    merged = merge_matches(locations, attach_hierarchy(candidates, gazetteer))

    assert len(merged) == len(locations)
    assert merged["match_name"].tolist()[:2] == ["Ambano", "Ambano"]
    assert pd.isna(merged.loc[2, "match_name"])
    assert merged.loc[0, "district_name"] == "Ambositra"
    assert merged.loc[0, "observatory_name"] == "Antalaha"
    assert "observatory_name_x" not in merged.columns


def test_attach_hierarchy_unknown_identifier(gazetteer):
    candidates = pd.DataFrame({
        "match_gid": ["MDG.2.2.1.1_1", "MDG.9.9.9.9_1", None],
    })

    result = attach_hierarchy(candidates, gazetteer)

    assert result["province_name"].tolist()[0] == "Fianarantsoa"
    assert result["district_name"].iloc[1:].isna().all()


def test_conflicting_rows_are_all_reported():
    locations = make_locations([
        (1995, "1", "Antalaha", "Ambano", "AMBANO", "1", "Vohitra", "1", 12),
        (1995, "1", "Antalaha", "Ambano", "AMBANO", "1", "Vohitra Sud", "1", 3),
        (1995, "1", "Antalaha", "Ambano", "AMBANO", "2", "Ankazo", "1", 7),
    ])

    duplicates = find_duplicates(locations)

    assert len(duplicates) == 2
    assert sorted(duplicates["village_name"]) == ["Vohitra", "Vohitra Sud"]


def test_exact_copies_are_not_conflicts():
    row = (1995, "1", "Antalaha", "Ambano", "AMBANO", "1", "Vohitra", "1", 12)
    locations = make_locations([row, row])

    assert find_duplicates(locations).empty


def test_duplicate_report_labels_stages():
    before = make_locations([
        (1995, "1", "Antalaha", "Ambano", "AMBANO", "1", "Vohitra", "1", 12),
        (1995, "1", "Antalaha", "Ambano", "AMBANO", "1", "Vohitra Sud", "1", 3),
    ])
    after = before.assign(match_name="Ambano")

    report = duplicate_report(before, after)

    assert report["stage"].tolist() == ["pre_merge", "pre_merge", "post_merge", "post_merge"]
