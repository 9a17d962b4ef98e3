#!/usr/bin/env python3
"""
Check cooperative data files before the CLI or API loads them.

Two passes run over each file:
  1. schema  - every table row has the right fields and types (schema.yaml)
  2. records - ids are unique, references point at existing rows and no
               tractor or implement has more than one open service order

Usage:
  validate_yaml.py [FILE ...]     (default: every data/*.yaml file)
"""

import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List

import yaml
from jsonschema import Draft7Validator

SCHEMA_FILE = Path(__file__).parent / "schema.yaml"
DATA_DIR = Path(__file__).parent / "data"

# (table, field, referenced table)
REFERENCES = [
    ("serviceOrders", "producerId", "producers"),
    ("serviceOrders", "tractorId", "tractors"),
    ("serviceOrders", "implementId", "implements"),
    ("fuelings", "tractorId", "tractors"),
    ("expenses", "tractorId", "tractors"),
    ("maintenanceHistory", "tractorId", "tractors"),
    ("schedules", "producer_id", "producers"),
    ("users", "roleId", "roles"),
]

ID_TABLES = [
    "tractors",
    "implements",
    "producers",
    "serviceOrders",
    "fuelings",
    "expenses",
    "maintenanceHistory",
    "schedules",
    "users",
    "roles",
]


def load_schema(path: Path = SCHEMA_FILE) -> dict:
    with open(path) as fp:
        return yaml.load(fp, Loader=yaml.SafeLoader)


def format_path(path) -> str:
    return ".".join(str(p) for p in path) or "(root)"


def schema_errors(data: Any, schema: dict) -> List[str]:
    """Every schema violation, as 'path: message', in document order."""
    validator = Draft7Validator(schema)
    found = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    return [f"{format_path(e.path)}: {e.message}" for e in found]


def check_integrity(data: Dict[str, Any]) -> List[str]:
    """Problems the schema cannot see: duplicate ids, dangling references, open orders."""
    tables = {name: data.get(name) or [] for name in ID_TABLES}
    problems = []

    ids = {}
    for name, rows in tables.items():
        counts = Counter(row.get("id") for row in rows)
        for row_id, count in counts.items():
            if count > 1:
                problems.append(f"{name}: id '{row_id}' is used {count} times")
        ids[name] = set(counts)

    for table, field, target in REFERENCES:
        for index, row in enumerate(tables[table]):
            value = row.get(field)
            if value and value not in ids[target]:
                problems.append(f"{table}.{index}.{field}: no {target} row '{value}'")

    equipment = {"tractor": "tractors", "implement": "implements"}
    for index, row in enumerate(tables["schedules"]):
        target = equipment.get(row.get("equipment_type"))
        if target and row.get("equipment_id") not in ids[target]:
            problems.append(
                f"schedules.{index}.equipment_id: no {target} row '{row.get('equipment_id')}'"
            )

    for field in ("tractorId", "implementId"):
        open_orders = Counter(
            row[field]
            for row in tables["serviceOrders"]
            if row.get("status") == "open" and row.get(field)
        )
        for equipment_id, count in open_orders.items():
            if count > 1:
                problems.append(
                    f"serviceOrders: '{equipment_id}' has {count} open orders"
                )

    return problems


def validate_data_file(filepath: Path, schema: dict) -> List[str]:
    """All problems found in one data file (empty when it is valid)."""
    try:
        with open(filepath) as fp:
            data = yaml.load(fp, Loader=yaml.SafeLoader)
    except OSError as e:
        return [f"cannot read file: {e}"]
    except yaml.YAMLError as e:
        return [f"invalid YAML: {e}"]

    errors = schema_errors(data, schema)
    if errors:
        return errors
    return check_integrity(data)


def main(argv=None):
    paths = [Path(p) for p in (sys.argv[1:] if argv is None else argv)]
    if not paths:
        if not DATA_DIR.is_dir():
            print(f"Error: data directory not found: {DATA_DIR}")
            return 1
        paths = sorted(DATA_DIR.glob("*.yaml")) + sorted(DATA_DIR.glob("*.yml"))
    if not paths:
        print("No data files to check.")
        return 0

    schema = load_schema()
    failed = 0
    for filepath in paths:
        problems = validate_data_file(filepath, schema)
        if problems:
            failed += 1
            print(f"{filepath}: {len(problems)} problem(s)")
            for problem in problems:
                print(f"    {problem}")
        else:
            print(f"{filepath}: ok")

    print()
    print(f"{len(paths) - failed} of {len(paths)} file(s) valid")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
