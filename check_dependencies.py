#!/usr/bin/env python3
"""Report which RideTrack runtime and test dependencies are importable."""

import argparse
import sys
from importlib import import_module
from importlib.metadata import PackageNotFoundError, version

RUNTIME_PACKAGES = [
    ('numpy', 'numpy'),
    ('yaml', 'PyYAML'),
    ('loguru', 'loguru'),
    ('jsonschema', 'jsonschema'),
]

TEST_PACKAGES = [
    ('pytest', 'pytest'),
]


def _installed_version(package_name):
    try:
        return version(package_name)
    except PackageNotFoundError:
        return 'unknown'


def check_dependencies(include_tests=False):
    """Return the distribution names that cannot be imported."""
    packages = RUNTIME_PACKAGES + (TEST_PACKAGES if include_tests else [])
    missing = []

    for module_name, package_name in packages:
        try:
            import_module(module_name)
        except ImportError:
            missing.append(package_name)
            print(f"[MISSING] {package_name:15}")
        else:
            print(f"[OK]      {package_name:15} {_installed_version(package_name)}")

    if missing:
        print(f"\nInstall with:\n   pip install {' '.join(missing)}")
    return missing


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--tests", action="store_true", help="Also check test-only packages")
    sys.exit(1 if check_dependencies(parser.parse_args().tests) else 0)
