"""Tests for identity parsing and version comparison."""

import pytest

from hubstore.errors import MalformedIdentityError
from hubstore.library.identity import (
    Identity,
    compare_versions,
    is_newer_patch,
    parse_folder_name,
    parse_identity,
)


def test_parse_full_uber_name():
    identity = parse_identity("H5P.MultiChoice 1.16.4")
    assert identity == Identity("H5P.MultiChoice", 1, 16, 4)
    assert identity.minor_line == "H5P.MultiChoice 1.16"
    assert identity.version == "1.16.4"


def test_parse_partial_identity_keeps_none():
    identity = parse_identity("H5P.Text")
    assert identity.major_version is None
    assert identity.minor_version is None
    assert not identity.has_minor_line
    assert identity.minor_line is None
    assert identity.uber_name == "H5P.Text"

    minor = parse_identity("H5P.Text 1.1")
    assert minor.patch_version is None
    assert minor.folder_name() == "H5P.Text-1.1"


@pytest.mark.parametrize(
    "text",
    ["", "   ", "H5P.Text 1.x", "H5P.Text 1.2.3.4", "H5P/Text 1.0", "H5P.Text 1..2"],
)
def test_parse_identity_rejects_malformed(text):
    with pytest.raises(MalformedIdentityError):
        parse_identity(text)


def test_parse_folder_name():
    assert parse_folder_name("H5P.Image-1.1") == Identity("H5P.Image", 1, 1)
    assert parse_folder_name("H5P.Image-1.1.22") == Identity("H5P.Image", 1, 1, 22)
    # Machine names may contain dashes
    assert parse_folder_name("H5P.Foo-Bar-2.0") == Identity("H5P.Foo-Bar", 2, 0)


def test_parse_folder_name_without_version():
    with pytest.raises(MalformedIdentityError):
        parse_folder_name("H5P.Image")


def test_folder_name_with_patch():
    identity = Identity("H5P.Image", 1, 1, 22)
    assert identity.folder_name() == "H5P.Image-1.1"
    assert identity.folder_name(with_patch=True) == "H5P.Image-1.1.22"


def test_compare_versions():
    assert compare_versions("1.2.3", "1.2.3") == 0
    assert compare_versions("1.2.0", "1.2") == 0
    assert compare_versions("1.3.0", "1.2.9") == 1
    assert compare_versions("1.2", "1.2.1") == -1
    assert compare_versions("1.10", "1.9") == 1
    assert compare_versions("2.0", "10.0") == -1


def test_is_newer_patch():
    assert is_newer_patch("1.2.3", "1.2.4")
    assert not is_newer_patch("1.2.3", "1.2.3")
    assert not is_newer_patch("1.2.4", "1.2.3")
    assert not is_newer_patch("1.2.3", "1.3.0")
    assert not is_newer_patch("1.2.3", "2.2.9")
