from pathlib import Path

import bayesint.io

PACKAGE_ROOT = Path(__file__).parents[1] / "bayesint"


def test_every_package_directory_is_a_regular_package():
    directories = [PACKAGE_ROOT, *[p for p in PACKAGE_ROOT.rglob("*") if p.is_dir()]]
    for directory in directories:
        if any(directory.glob("*.py")):
            assert (directory / "__init__.py").exists(), directory


def test_io_package_exports():
    assert bayesint.io.__file__ is not None
    assert callable(bayesint.io.load_series)
    assert callable(bayesint.io.setup_logging)
