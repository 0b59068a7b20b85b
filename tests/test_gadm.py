import io
import json
import zipfile
from unittest import mock

import pytest

from conftest import write_geojson
from ror_gazetteer.pipeline.extract.gadm import (
    GAZETTEER_COLUMNS,
    extract_geojson_from_zip,
    fetch_gadm,
    load_gazetteer,
)
from ror_gazetteer.qa import QASignals


def test_load_gazetteer(gadm_file):
    qa = QASignals()

    gazetteer = load_gazetteer(gadm_file, 4, qa)

    assert list(gazetteer.columns) == GAZETTEER_COLUMNS
    assert len(gazetteer) == 4

    row = gazetteer[gazetteer["gadm_gid"] == "MDG.1.1.3.4_1"].iloc[0]
    assert row["gadm_name"] == "Feramanga-Avaratra"
    assert row["gadm_name_norm"] == "FERAMANGA AVARATRA"
    assert row["district_name"] == "Manjakandriana"
    assert row["region_name"] == "Analamanga"
    assert row["province_name"] == "Antananarivo"
    assert row["geometry"]["type"] == "Point"

    assert qa.signals["units_loaded"] == 4
    assert qa.signals["ambiguous_names"] == 0


def test_load_gazetteer_missing_parent_levels(tmp_path):
    units = [("Toliara", "Atsimo-Andrefana", "Toliara I", "Toliara", "MDG.6_1")]
    path = write_geojson(tmp_path / "gadm41_MDG_1.json", units, level=1)

    gazetteer = load_gazetteer(path, 1)

    assert gazetteer.loc[0, "gadm_name"] == "Toliara"
    assert gazetteer.loc[0, ["district_name", "region_name", "province_name"]].isna().all()


def test_load_gazetteer_without_features(tmp_path):
    path = tmp_path / "empty.json"
    path.write_text(json.dumps({"type": "FeatureCollection", "features": []}))

    with pytest.raises(ValueError, match="No features"):
        load_gazetteer(path, 4)


def test_load_gazetteer_wrong_level(gadm_file):
    with pytest.raises(ValueError, match="NAME_5"):
        load_gazetteer(gadm_file, 5)


def test_fetch_gadm_reuses_cache(gadm_file):
    qa = QASignals()

    with mock.patch("ror_gazetteer.pipeline.extract.gadm.requests.get") as get:
        path = fetch_gadm("MDG", 4, gadm_file, qa)

    get.assert_not_called()
    assert path == gadm_file
    assert qa.signals["fetch_method"] == "Local cache"


def zipped(name, content):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(name, content)
    return buffer.getvalue()


@pytest.mark.parametrize("packed", [False, True])
def test_fetch_gadm_downloads(tmp_path, gadm_file, packed):
    payload = gadm_file.read_bytes()
    response = mock.Mock(status_code=200)
    response.content = zipped("gadm41_MDG_4.json", payload) if packed else payload
    cache = tmp_path / "cache" / "gadm41_MDG_4.json"

    with mock.patch("ror_gazetteer.pipeline.extract.gadm.requests.get",
                    return_value=response) as get:
        path = fetch_gadm("MDG", 4, cache)

    get.assert_called_once()
    assert get.call_args.args[0].endswith("gadm41_MDG_4.json")
    response.raise_for_status.assert_called_once()
    assert path.read_bytes() == payload
    assert len(load_gazetteer(path, 4)) == 4


def test_zip_without_json():
    with pytest.raises(ValueError):
        extract_geojson_from_zip(zipped("readme.txt", "nothing here"))
