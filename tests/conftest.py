"""Pytest configuration and fixtures."""

import json

import pytest


@pytest.fixture
def sample_package_json():
    """Sample package.json content for testing."""
    return """
{
  "name": "test-project",
  "version": "1.0.0",
  "dependencies": {
    "express": "^4.18.0",
    "lodash": "~4.17.20"
  },
  "devDependencies": {
    "jest": "^29.0.0",
    "local-lib": "file:../local-lib"
  },
  "peerDependencies": {
    "react": ">=17.0.0"
  }
}
"""


@pytest.fixture
def project_dir(tmp_path, sample_package_json):
    """A project directory holding the sample package.json."""
    (tmp_path / "package.json").write_text(sample_package_json)
    return tmp_path


@pytest.fixture
def write_manifest(tmp_path):
    """Write a package.json built from a dict and return its directory."""

    def _write(data: dict):
        (tmp_path / "package.json").write_text(json.dumps(data, indent=2))
        return tmp_path

    return _write
