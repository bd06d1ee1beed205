"""Smoke test to verify testing infrastructure is working."""


def test_package_imports():
    """The package exposes a version string."""
    import neural_synth

    assert neural_synth.__version__


def test_python_version():
    """Verify Python version meets requirements."""
    import sys

    assert sys.version_info >= (3, 11), "Python 3.11 or higher required"
