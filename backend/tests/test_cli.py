from datetime import timedelta

import pytest

from run_tracker import cli
from run_tracker.core.config import ServiceSettings, settings
from run_tracker.services.fingerprint import fingerprint
from run_tracker.services.importer import ImportCoordinator
from conftest import START, FakeDecoder, activity_messages

A = b"FIT-A"
C = b"FIT-C"


@pytest.fixture
def fake_import(monkeypatch):
    decoder = FakeDecoder(
        {A: activity_messages(n_points=4), C: activity_messages(start=START + timedelta(days=1), n_points=3)}
    )

    def _coordinator(db, cfg, archive=True, elevation=True, route_images=False):
        return ImportCoordinator(db, decoder=decoder)

    monkeypatch.setattr(cli, "coordinator_from_settings", _coordinator)
    return decoder


def test_import_reports_failures(fake_import, tmp_path, capsys):
    (tmp_path / "a.fit").write_bytes(A)
    (tmp_path / "b.fit").write_bytes(b"broken")

    assert cli.main(["import", str(tmp_path)]) == 1
    out = capsys.readouterr().out
    assert "imported" in out and "a.fit" in out
    assert "failed" in out and "b.fit" in out


def test_import_then_duplicate(fake_import, tmp_path, capsys):
    path = tmp_path / "a.fit"
    path.write_bytes(A)

    assert cli.main(["import", str(path)]) == 0
    # the same single file again is an error
    assert cli.main(["import", str(path)]) == 1
    # inside a directory scan it is only skipped
    assert cli.main(["import", str(tmp_path)]) == 0
    assert "duplicate" in capsys.readouterr().out


def test_import_without_paths(capsys):
    assert cli.main(["import"]) == 1


def test_import_merges_configured_and_given_paths(fake_import, monkeypatch, tmp_path, capsys):
    configured = tmp_path / "watch"
    configured.mkdir()
    (configured / "a.fit").write_bytes(A)
    extra = tmp_path / "c.fit"
    extra.write_bytes(C)
    monkeypatch.setattr(settings, "import_paths", [str(configured)])

    assert cli.main(["import", str(extra)]) == 0
    out = capsys.readouterr().out
    assert fingerprint(A) in out and fingerprint(C) in out


def test_import_skip_config_paths(fake_import, monkeypatch, tmp_path, capsys):
    configured = tmp_path / "watch"
    configured.mkdir()
    (configured / "a.fit").write_bytes(A)
    extra = tmp_path / "c.fit"
    extra.write_bytes(C)
    monkeypatch.setattr(settings, "import_paths", [str(configured)])

    assert cli.main(["import", "--skip-config-paths", str(extra)]) == 0
    out = capsys.readouterr().out
    assert fingerprint(C) in out
    assert fingerprint(A) not in out

    assert cli.main(["import", "--skip-config-paths"]) == 1


def test_configured_single_file_duplicate_is_an_error(fake_import, monkeypatch, tmp_path):
    path = tmp_path / "a.fit"
    path.write_bytes(A)
    monkeypatch.setattr(settings, "import_paths", [str(path)])

    assert cli.main(["import"]) == 0
    assert cli.main(["import"]) == 1


def test_list_files(fake_import, tmp_path, capsys):
    path = tmp_path / "a.fit"
    path.write_bytes(A)
    cli.main(["import", str(path)])
    capsys.readouterr()

    assert cli.main(["list-files", "--since", "2024-01-01"]) == 0
    out = capsys.readouterr().out
    assert fingerprint(A) in out
    assert "/mi" in out

    assert cli.main(["list-files", "--until", "2024-01-01"]) == 0
    assert fingerprint(A) not in capsys.readouterr().out


def test_update_elevation_needs_files_or_fix_missing():
    assert cli.main(["update-elevation"]) == 1


def test_update_elevation_unknown_file(monkeypatch):
    monkeypatch.setattr(settings, "services", {"elevation": ServiceSettings(handler="opentopodata")})
    assert cli.main(["update-elevation", "deadbeef"]) == 1


def test_route_image_to_file(fake_import, monkeypatch, tmp_path):
    class Renderer:
        image_format = "png"

        def draw_route(self, trace, markers):
            return b"\x89PNG route"

    path = tmp_path / "a.fit"
    path.write_bytes(A)
    cli.main(["import", str(path)])

    monkeypatch.setattr(settings, "services", {"route_visualization": ServiceSettings(handler="mapbox")})
    monkeypatch.setattr(cli, "new_route_renderer", lambda config: Renderer())
    output = tmp_path / "route.png"

    assert cli.main(["route-image", ":last", "-o", str(output)]) == 0
    assert output.read_bytes() == b"\x89PNG route"


def test_route_image_without_service():
    assert cli.main(["route-image", ":last"]) == 1
