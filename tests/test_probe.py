from stelbridge.models import Mode
from stelbridge.probe import format_light, main
from stelbridge.resolver import resolve
from stelbridge.snapshot import DATA_FILE, parse_snapshot


def test_format_light_lists_sun(snapshot_text):
    text = format_light(resolve(parse_snapshot(snapshot_text), Mode.SNAPSHOT))
    assert "source        Sun" in text
    assert "shadows       Soft" in text
    assert "impostor" in text


def test_main_snapshot_only(tmp_path, snapshot_text, monkeypatch, capsys):
    sky = tmp_path / "winter"
    sky.mkdir()
    (sky / DATA_FILE).write_text(snapshot_text, encoding="utf-8")
    monkeypatch.setenv("STEL_SNAPSHOT_BASE", str(tmp_path))
    monkeypatch.delenv("STEL_LIVE", raising=False)

    code = main(["--snapshot-only", "--sky-name", "winter"])

    out = capsys.readouterr().out
    assert code == 0
    assert "mode          snapshot" in out
    assert "time          2017-09-04T12:00:00" in out
    assert "source        Sun" in out


def test_main_rejects_bad_configuration(monkeypatch):
    monkeypatch.setenv("STEL_PORT", "not-a-port")
    assert main(["--snapshot-only"]) == 2
