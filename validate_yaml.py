#!/usr/bin/env python3
"""Check vehicle files (and optionally the config file) against the bundled schemas.

Every schema violation in a file is reported, not only the first, so a
mechanic fixing a vehicle record sees everything wrong with it at once.
"""
import argparse
import sys
from pathlib import Path
from typing import List

import yaml
from jsonschema import Draft7Validator

from fleet.config import load_schema


def describe(error) -> str:
    where = ".".join(str(p) for p in error.absolute_path)
    return f"{where}: {error.message}" if where else error.message


def validate_yaml_file(filepath: Path, schema: dict) -> List[str]:
    """All problems found in one YAML file; empty when it is valid."""
    try:
        with open(filepath) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        return [f"YAML parse error: {e}"]
    except OSError as e:
        return [f"Cannot read file: {e}"]

    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path])
    return [describe(e) for e in errors]


def validate_vehicle_file(filepath: Path, schema: dict) -> List[str]:
    return validate_yaml_file(filepath, schema)


def report(filepath: Path, errors: List[str]) -> bool:
    """Print the outcome for one file; True if it was valid."""
    status = "FAIL" if errors else "OK"
    print(f"{status}: {filepath.name}")
    for error in errors:
        print(f"  - {error}")
    return not errors


def main(argv=None):
    parser = argparse.ArgumentParser(description="Validate fleet YAML files")
    parser.add_argument(
        "--vehicles-dir",
        type=Path,
        default=Path("vehicles"),
        help="Directory of vehicle YAML files (default: ./vehicles)",
    )
    parser.add_argument("--config", type=Path, help="Also check this config file")
    args = parser.parse_args(argv)

    results = []
    if args.config is not None:
        results.append(report(args.config, validate_yaml_file(args.config, load_schema("config"))))

    if not args.vehicles_dir.is_dir():
        print(f"Error: vehicles directory not found: {args.vehicles_dir}")
        return 1

    vehicle_files = sorted(args.vehicles_dir.glob("*.yaml"))
    if not vehicle_files:
        print(f"Warning: no vehicle files in {args.vehicles_dir}")

    schema = load_schema("vehicle")
    results.extend(report(path, validate_vehicle_file(path, schema)) for path in vehicle_files)

    print(f"\n{sum(results)}/{len(results)} file(s) valid")
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(main())
