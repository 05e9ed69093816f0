"""
Tests for the version module of the Aegis relayer.
"""
import importlib
import re
from importlib import metadata as importlib_metadata
from unittest.mock import patch, mock_open

import pytest
import tomli

from aegis_relayer import __version__


def _raise(exc):
    def _fail(*args, **kwargs):
        raise exc
    return _fail


@pytest.fixture
def vmod():
    import aegis_relayer.version as module
    yield module
    # Leave the real version behind for other tests
    importlib.reload(module)


def test_version_format():
    """Test that the version string follows semantic versioning"""
    assert re.match(r'^\d+\.\d+\.\d+$', __version__), "Version should follow semantic versioning"


@patch('importlib.metadata.version')
def test_version_from_metadata(mock_metadata_version, vmod):
    """When metadata lookup succeeds, version comes from metadata"""
    mock_metadata_version.return_value = "2.3.4"
    importlib.reload(vmod)
    assert vmod.__version__ == "2.3.4"
    mock_metadata_version.assert_called_with("aegis-relayer")


@patch('importlib.metadata.version')
@patch('pathlib.Path.open', new_callable=mock_open, read_data=b'[project]\nversion = "1.2.3"\n')
def test_version_from_file(mock_open_file, mock_metadata_version, vmod):
    """When metadata lookup fails, pyproject.toml is read"""
    mock_metadata_version.side_effect = importlib_metadata.PackageNotFoundError
    importlib.reload(vmod)
    assert vmod.__version__ == "1.2.3"


def test_version_file_not_found(monkeypatch, vmod):
    """If pyproject.toml is missing, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', _raise(importlib_metadata.PackageNotFoundError()))
    monkeypatch.setattr('pathlib.Path.open', _raise(FileNotFoundError()))
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"


def test_version_key_error(monkeypatch, vmod):
    """If TOML exists but has no version key, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', _raise(importlib_metadata.PackageNotFoundError()))
    monkeypatch.setattr('pathlib.Path.open', mock_open(read_data=b'[project]\nname = "aegis-relayer"\n'))
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"


def test_version_toml_decode_error(monkeypatch, vmod):
    """If TOML parse fails, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', _raise(importlib_metadata.PackageNotFoundError()))
    monkeypatch.setattr('pathlib.Path.open', mock_open(read_data=b'invalid toml content'))
    monkeypatch.setattr(tomli, 'load', _raise(tomli.TOMLDecodeError("fail", "", 0)))
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"
