import pandas as pd

from conftest import write_survey
from ror_gazetteer.pipeline.extract.survey import (
    LOCATION_COLUMNS,
    discover_survey_files,
    extract_locations,
    load_locations,
    read_survey_file,
    survey_counts,
)
from ror_gazetteer.qa import QASignals


def households(rows):
    return pd.DataFrame(rows, columns=[
        "observatory_code", "observatory_name", "municipality_code", "municipality_raw",
        "village_code", "village_name", "site_code",
    ]).astype("string")


def test_discover_skips_missing_years(tmp_path):
    for year in (1995, 1997):
        path = tmp_path / str(year) / "res_deb.dta"
        path.parent.mkdir()
        path.touch()
    qa = QASignals()

    files = discover_survey_files(tmp_path, range(1995, 1998), qa_signals=qa)

    assert list(files) == [1995, 1997]
    assert files[1997] == tmp_path / "1997" / "res_deb.dta"
    assert qa.signals["survey_years_skipped"] == "1996"


def test_extract_locations_counts_households():
    frames = {
        1995: households([
            ("1", "Antalaha", "10", "Ambano centre", "1", "Vohitra", "1"),
            ("1", "Antalaha", "10", "Ambano centre", "1", "Vohitra", "1"),
            ("1", "Antalaha", "10", "Ambano centre", "2", "Ankazo", "1"),
        ]),
        1996: households([
            ("1", "Antalaha", "10", "Ambano centre", "1", "Vohitra", "1"),
        ]),
    }

    locations = extract_locations(frames)

    assert list(locations.columns) == LOCATION_COLUMNS + ["n_records"]
    assert len(locations) == 3
    assert locations["n_records"].sum() == 4
    assert set(locations["municipality_norm"]) == {"AMBANO"}

    first = locations[(locations["year"] == 1995) & (locations["village_code"] == "1")]
    assert first["n_records"].tolist() == [2]


def test_extract_locations_fills_absent_fields():
    frame = households([
        ("1", None, "10", "Ambano", "1", "Vohitra", "1"),
    ]).drop(columns=["village_name"])

    locations = extract_locations({1995: frame})

    assert pd.isna(locations.loc[0, "village_name"])
    # observatory name falls back to the code
    assert locations.loc[0, "observatory_name"] == "1"


def test_extract_locations_without_frames():
    locations = extract_locations({})
    assert locations.empty
    assert "n_records" in locations.columns


def test_read_survey_file_uses_value_labels(tmp_path):
    path = write_survey(tmp_path / "res_deb.dta", [
        (1, 10, "Ambano", 1, "Vohitra", 1),
        (3, 20, "Feramanga-Avaratra", 2, "Ankazo", 1),
    ])

    df = read_survey_file(path)

    assert df["observatory_code"].tolist() == ["1", "3"]
    assert df["observatory_name"].tolist() == ["Antalaha", "Tulear"]
    assert df["municipality_raw"].tolist() == ["Ambano", "Feramanga-Avaratra"]
    assert df["village_code"].tolist() == ["1", "2"]


def test_read_survey_file_missing_variables(tmp_path):
    path = tmp_path / "res_deb.dta"
    pd.DataFrame({"j0": [1], "j2": ["Ambano"]}).to_stata(path, write_index=False)

    df = read_survey_file(path)

    assert "municipality_raw" in df.columns
    assert "village_code" not in df.columns


def test_load_locations_and_counts(tmp_path):
    write_survey(tmp_path / "1995" / "res_deb.dta", [
        (1, 10, "Ambano", 1, "Vohitra", 1),
        (1, 10, "Ambano", 1, "Vohitra", 1),
        (2, 30, "Ambanu", 4, "Ankazo", 1),
    ])
    write_survey(tmp_path / "1996" / "res_deb.dta", [
        (1, 10, "Ambano", 1, "Vohitra", 1),
    ])

    locations = load_locations(tmp_path, [1995, 1996, 1997])
    counts = survey_counts(locations).set_index("observatory_code")

    assert list(counts.columns) == ["observatory_name", "1995", "1996"]
    assert counts.loc["1", "1995"] == 2
    assert counts.loc["1", "1996"] == 1
    assert counts.loc["2", "1996"] == 0
    assert counts.loc["2", "observatory_name"] == "Marovoay"
