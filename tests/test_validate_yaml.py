#!/usr/bin/env python3
"""Tests for validate_yaml schema and record checks."""

from pathlib import Path

from validate_yaml import (
    check_integrity,
    format_path,
    load_schema,
    main,
    schema_errors,
    validate_data_file,
)

SAMPLE = Path(__file__).parent.parent / "data" / "coop.yaml"


def write(tmp_path, text, name="data.yaml"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestLoadSchema:
    """Tests for load_schema function."""

    def test_returns_dict(self):
        assert isinstance(load_schema(), dict)

    def test_has_expected_structure(self):
        schema = load_schema()
        assert "tractors" in schema["properties"]
        assert "serviceOrders" in schema["properties"]
        assert "tractors" in schema["required"]


class TestFormatPath:
    def test_joins_parts(self):
        assert format_path(["tractors", 0, "hourlyRate"]) == "tractors.0.hourlyRate"

    def test_root(self):
        assert format_path([]) == "(root)"


# =============================================================================
# Schema pass
# =============================================================================


class TestSchemaErrors:
    def test_reports_every_violation(self):
        data = {
            "tractors": [
                {"id": "t1", "name": "MF"},
                {"id": "t2", "name": "Valtra", "hourlyRate": "cheap"},
            ]
        }
        errors = schema_errors(data, load_schema())
        assert len(errors) == 2
        assert errors[0].startswith("tractors.0:")
        assert "hourlyRate" in errors[0]
        assert errors[1].startswith("tractors.1.hourlyRate:")

    def test_root_type(self):
        errors = schema_errors(None, load_schema())
        assert errors[0].startswith("(root):")


class TestValidateDataFile:
    """Tests for validate_data_file function."""

    def test_sample_file_is_valid(self):
        assert validate_data_file(SAMPLE, load_schema()) == []

    def test_fixture_file_is_valid(self, data_file):
        assert validate_data_file(data_file, load_schema()) == []

    def test_valid_minimal_returns_no_errors(self, tmp_path):
        path = write(tmp_path, """
tractors:
  - id: t1
    name: MF 4275
    hourlyRate: 120
""")
        assert validate_data_file(path, load_schema()) == []

    def test_missing_required_field(self, tmp_path):
        path = write(tmp_path, """
tractors:
  - id: t1
    name: MF 4275
""")
        errors = validate_data_file(path, load_schema())
        assert len(errors) == 1
        assert errors[0].startswith("tractors.0:")
        assert "hourlyRate" in errors[0]

    def test_bad_order_status(self, tmp_path):
        path = write(tmp_path, """
tractors: []
serviceOrders:
  - id: o1
    producerId: p1
    status: pending
""")
        errors = validate_data_file(path, load_schema())
        assert len(errors) == 1
        assert errors[0].startswith("serviceOrders.0.status:")

    def test_schema_errors_skip_record_checks(self, tmp_path):
        path = write(tmp_path, """
tractors:
  - id: t1
    name: MF
fuelings:
  - {id: f1, tractorId: t9, horimeter: 1, liters: 1, cost: 1, date: '2025-01-01'}
""")
        errors = validate_data_file(path, load_schema())
        assert not any("t9" in e for e in errors)

    def test_yaml_parse_error(self, tmp_path):
        path = write(tmp_path, "tractors: [unclosed\n")
        errors = validate_data_file(path, load_schema())
        assert errors[0].startswith("invalid YAML:")

    def test_missing_file(self, tmp_path):
        errors = validate_data_file(tmp_path / "nope.yaml", load_schema())
        assert errors[0].startswith("cannot read file:")


# =============================================================================
# Record pass
# =============================================================================


class TestCheckIntegrity:
    def base(self):
        return {
            "tractors": [{"id": "t1"}, {"id": "t2"}],
            "implements": [{"id": "i1"}],
            "producers": [{"id": "p1"}],
            "roles": [{"id": "r1"}],
        }

    def test_clean_data(self):
        data = self.base()
        data["serviceOrders"] = [
            {"id": "o1", "producerId": "p1", "tractorId": "t1", "status": "open"},
            {"id": "o2", "producerId": "p1", "tractorId": "t1", "status": "closed"},
        ]
        data["users"] = [{"id": "u1", "roleId": "r1"}, {"id": "u2", "roleId": None}]
        assert check_integrity(data) == []

    def test_duplicate_ids(self):
        data = self.base()
        data["tractors"].append({"id": "t1"})
        assert check_integrity(data) == ["tractors: id 't1' is used 2 times"]

    def test_dangling_references(self):
        data = self.base()
        data["fuelings"] = [{"id": "f1", "tractorId": "t9"}]
        data["users"] = [{"id": "u1", "roleId": "r9"}]
        problems = check_integrity(data)
        assert "fuelings.0.tractorId: no tractors row 't9'" in problems
        assert "users.0.roleId: no roles row 'r9'" in problems

    def test_schedule_equipment_follows_type(self):
        data = self.base()
        data["schedules"] = [
            {"id": "s1", "equipment_type": "implement", "equipment_id": "t1",
             "producer_id": "p1"},
            {"id": "s2", "equipment_type": "tractor", "equipment_id": "t1",
             "producer_id": "p1"},
        ]
        assert check_integrity(data) == [
            "schedules.0.equipment_id: no implements row 't1'"
        ]

    def test_two_open_orders_on_one_implement(self):
        data = self.base()
        data["serviceOrders"] = [
            {"id": "o1", "producerId": "p1", "implementId": "i1", "status": "open"},
            {"id": "o2", "producerId": "p1", "implementId": "i1", "status": "open"},
        ]
        assert check_integrity(data) == ["serviceOrders: 'i1' has 2 open orders"]


# =============================================================================
# main
# =============================================================================


class TestMain:
    def test_reports_each_file(self, tmp_path, capsys):
        good = write(tmp_path, "tractors: []\n", "good.yaml")
        bad = write(tmp_path, "settings: {}\n", "bad.yaml")

        assert main([str(good), str(bad)]) == 1
        out = capsys.readouterr().out
        assert f"{good}: ok" in out
        assert f"{bad}: 1 problem(s)" in out
        assert "(root): 'tractors' is a required property" in out
        assert "1 of 2 file(s) valid" in out

    def test_all_valid(self, tmp_path, capsys):
        good = write(tmp_path, "tractors: []\n", "good.yaml")
        assert main([str(good)]) == 0
        assert "1 of 1 file(s) valid" in capsys.readouterr().out

    def test_record_problems_fail_the_run(self, tmp_path, capsys):
        path = write(tmp_path, """
tractors:
  - {id: t1, name: MF, hourlyRate: 100}
  - {id: t1, name: Valtra, hourlyRate: 150}
""")
        assert main([str(path)]) == 1
        assert "id 't1' is used 2 times" in capsys.readouterr().out
