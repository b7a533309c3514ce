"""Tests for the hubstore command line."""

import io
import json
import tempfile
import zipfile
from pathlib import Path

import yaml
from click.testing import CliRunner

from hubstore.cli import main


def _library_json(machine_name: str, version: str, preloaded=()) -> str:
    major, minor, patch = (int(p) for p in version.split("."))
    dependencies = []
    for dep in preloaded:
        name, dep_version = dep.split(" ")
        dep_major, dep_minor = dep_version.split(".")
        dependencies.append(
            {"machineName": name, "majorVersion": int(dep_major), "minorVersion": int(dep_minor)}
        )
    return json.dumps(
        {
            "title": machine_name,
            "machineName": machine_name,
            "majorVersion": major,
            "minorVersion": minor,
            "patchVersion": patch,
            "runnable": 1,
            "preloadedDependencies": dependencies,
        }
    )


def _install(root: Path, uber_name: str, preloaded=()):
    machine_name, version = uber_name.split(" ")
    major, minor, _ = version.split(".")
    folder = root / "assets" / "libraries" / f"{machine_name}-{major}.{minor}"
    folder.mkdir(parents=True)
    (folder / "library.json").write_text(_library_json(machine_name, version, preloaded))
    return folder


def _config(root: Path) -> str:
    path = root / "hub.yaml"
    path.write_text(yaml.safe_dump({"assets_dir": "assets"}))
    return str(path)


def _invoke(root: Path, *args):
    return CliRunner().invoke(main, ["--config", _config(root), *args])


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_list_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        result = _invoke(root, "list")

        assert result.exit_code == 0
        assert "No libraries found." in result.output
        assert (root / "assets" / "libraries").is_dir()


def test_list_with_filters():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _install(root, "H5P.Text 1.1.3")
        _install(root, "H5P.Image 1.1.22")

        result = _invoke(root, "list", "--machine-name", "H5P.Text")

        assert result.exit_code == 0
        assert "H5P.Text 1.1.3" in result.output
        assert "H5P.Image" not in result.output


def test_add_archive():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        archive = root / "text.h5p"
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("H5P.Text-1.1/library.json", _library_json("H5P.Text", "1.1.3"))
        archive.write_bytes(buffer.getvalue())

        result = _invoke(root, "add", str(archive))

        assert result.exit_code == 0
        assert "Import done." in result.output
        assert (root / "assets" / "libraries" / "H5P.Text-1.1" / "library.json").is_file()
        assert not (root / "assets" / ".update.lock").exists()


def test_add_invalid_archive_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        archive = root / "broken.h5p"
        archive.write_bytes(b"not a zip")

        result = _invoke(root, "add", str(archive))

        assert result.exit_code == 1
        assert "Import failed" in result.output


def test_add_refuses_while_update_in_progress():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "assets").mkdir()
        (root / "assets" / ".update.lock").write_text("updating")
        archive = root / "text.h5p"
        archive.write_bytes(b"")

        result = _invoke(root, "add", str(archive))

        assert result.exit_code == 1
        assert "Update already in progress" in result.output


def test_remove_library():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        folder = _install(root, "H5P.Text 1.1.3")
        _install(root, "H5P.Text 1.2.0")

        result = _invoke(root, "remove", "H5P.Text 1.1")

        assert result.exit_code == 0
        assert "Library folder removed." in result.output
        assert not folder.exists()
        assert (root / "assets" / "libraries" / "H5P.Text-1.2").exists()


def test_remove_ambiguous_machine_name():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _install(root, "H5P.Text 1.1.3")
        _install(root, "H5P.Text 1.2.0")

        result = _invoke(root, "remove", "H5P.Text")

        assert result.exit_code == 1
        assert "multiple library folders" in result.output
        assert "H5P.Text 1.1.3" in result.output
        assert "H5P.Text 1.2.0" in result.output


def test_remove_suggests_prefix():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _install(root, "H5P.Text 1.1.3")

        result = _invoke(root, "remove", "Text")

        assert result.exit_code == 1
        assert "Did you mean H5P.Text?" in result.output


def test_deps_and_total_deps():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _install(root, "H5P.Column 1.13.2", preloaded=["H5P.Text 1.1"])
        _install(root, "H5P.Text 1.1.3", preloaded=["H5P.JoubelUI 1.3"])

        result = _invoke(root, "deps", "H5P.Column")
        assert result.exit_code == 0
        assert "- H5P.Text 1.1" in result.output
        assert "H5P.JoubelUI" not in result.output

        result = _invoke(root, "total-deps", "H5P.Column")
        assert result.exit_code == 0
        assert "- H5P.Text 1.1" in result.output
        assert "H5P.JoubelUI 1.3 (not installed)" in result.output


def test_check_reports_failure():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _install(root, "H5P.Column 1.13.2", preloaded=["X 9.9"])

        result = _invoke(root, "check", "H5P.Column")

        assert result.exit_code == 1
        assert "Dependency check (1 findings)" in result.output
        assert "[FAIL] H5P.Column 1.13: 1 error(s), 0 warning(s)" in result.output


def test_check_passes():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _install(root, "H5P.Text 1.1.3")

        result = _invoke(root, "check", "H5P.Text 1.1")

        assert result.exit_code == 0
        assert "[PASS] H5P.Text 1.1" in result.output


def test_check_missing_library():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(Path(tmpdir), "check", "H5P.Nothing")

        assert result.exit_code == 1
        assert "Library not installed" in result.output


def test_export():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _install(root, "H5P.Text 1.1.3")

        result = _invoke(root, "export", "H5P.Text")

        assert result.exit_code == 0
        assert "Export written to" in result.output
        assert (root / "assets" / "exports" / "H5P.Text-1.1.3.h5p").is_file()


def test_export_missing_library():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(Path(tmpdir), "export", "H5P.Nothing 1.0")

        assert result.exit_code == 1
        assert "Library not installed" in result.output


def test_add_refuses_symlinked_archive():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        archive = root / "text.h5p"
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("H5P.Text-1.1/library.json", _library_json("H5P.Text", "1.1.3"))
        archive.write_bytes(buffer.getvalue())
        link = root / "link.h5p"
        link.symlink_to(archive)

        result = _invoke(root, "add", str(link))

        assert result.exit_code == 1
        assert not (root / "assets" / "libraries" / "H5P.Text-1.1").exists()


def test_remove_unreadable_library_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        folder = root / "assets" / "libraries" / "H5P.Foo-1.0"
        folder.mkdir(parents=True)
        (folder / "library.json").write_text("{")

        result = _invoke(root, "remove", "H5P.Foo 1.0")

        assert result.exit_code == 1
        assert "Library folder removed." not in result.output
        assert "Could not remove H5P.Foo-1.0" in result.output
        assert folder.exists()


def test_check_uninstalled_minor_line():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _install(root, "H5P.Foo 1.0.0", preloaded=["X 9.9"])

        result = _invoke(root, "check", "H5P.Foo 2.5")

        assert result.exit_code == 1
        assert "Library not installed: H5P.Foo 2.5" in result.output
        assert "[PASS]" not in result.output

        result = _invoke(root, "check", "H5P.Foo 1.0")
        assert result.exit_code == 1
        assert "[FAIL] H5P.Foo 1.0: 1 error(s), 0 warning(s)" in result.output


def test_update_exports():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        _install(root, "H5P.Column 1.13.2", preloaded=["H5P.Text 1.1"])
        _install(root, "H5P.Text 1.1.3")
        exports = root / "assets" / "exports"
        exports.mkdir(parents=True)
        (exports / "H5P.Gone-1.0.0.h5p").write_bytes(b"stale")

        result = _invoke(root, "update-exports")

        assert result.exit_code == 0
        assert "Done updating 2 export files." in result.output
        assert sorted(p.name for p in exports.iterdir()) == [
            "H5P.Column-1.13.2.h5p",
            "H5P.Text-1.1.3.h5p",
        ]
        assert list((root / "assets" / "temp").iterdir()) == []
        assert not (root / "assets" / ".update.lock").exists()


def test_update_exports_unknown_library():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _invoke(Path(tmpdir), "update-exports", "H5P.Nothing 1.0")

        assert result.exit_code == 1
        assert "Library not installed" in result.output
