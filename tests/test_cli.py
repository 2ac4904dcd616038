"""
Tests for the command-line interface
"""

import json

import pytest

from cli import main


@pytest.fixture
def data_files(tmp_path):
    conditions = [{
        "id": "lc-1",
        "customerId": "cust-1",
        "desiredAreas": ["豊中市"],
        "maxPrice": 2500,
        "preferredLandArea": 50,
        "stationDistance": 15,
        "priorities": {"area": 5, "price": 5, "size": 5, "access": 5, "environment": 5},
    }]
    properties = [
        {
            "id": "prop-good", "name": "豊中 土地", "address": "大阪府豊中市xx町",
            "area": "豊中市xx", "landArea": 52, "price": 2300, "stationDistance": 10,
        },
        {
            "id": "prop-sold", "name": "売約済", "address": "大阪府豊中市yy町",
            "area": "豊中市yy", "landArea": 52, "price": 2300, "stationDistance": 10,
            "status": "sold",
        },
    ]
    conditions_file = tmp_path / "conditions.json"
    properties_file = tmp_path / "properties.json"
    conditions_file.write_text(json.dumps(conditions, ensure_ascii=False), encoding="utf-8")
    properties_file.write_text(json.dumps(properties, ensure_ascii=False), encoding="utf-8")
    return conditions_file, properties_file


class TestMatchCommand:

    def test_ranks_available_properties(self, data_files, capsys):
        conditions_file, properties_file = data_files

        exit_code = main(["match", str(conditions_file), str(properties_file)])

        assert exit_code == 0
        results = json.loads(capsys.readouterr().out)
        assert [r["propertyId"] for r in results] == ["prop-good"]
        assert results[0]["matchScore"] == 97

    def test_all_scores_every_pair(self, data_files, capsys):
        conditions_file, properties_file = data_files

        main(["match", "--all", str(conditions_file), str(properties_file)])

        results = json.loads(capsys.readouterr().out)
        assert {r["propertyId"] for r in results} == {"prop-good", "prop-sold"}

    def test_missing_file(self, tmp_path, capsys):
        exit_code = main(["match", str(tmp_path / "none.json"), str(tmp_path / "none.json")])

        assert exit_code == 1
        assert "File not found" in capsys.readouterr().err


class TestExtractCommand:

    def test_extract_reception(self, tmp_path, capsys):
        document = tmp_path / "reception.json"
        document.write_text(
            json.dumps({"customerId": "cust-1", "address": "大阪府吹田市千里山"}, ensure_ascii=False),
            encoding="utf-8",
        )

        exit_code = main(["extract", "reception", str(document)])

        assert exit_code == 0
        update = json.loads(capsys.readouterr().out)
        assert update["desired_areas"] == ["吹田"]
        assert update["last_updated_from"] == "reception"

    def test_manual_is_not_a_choice(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["extract", "manual", str(tmp_path / "x.json")])
