"""Tests for the command line entry point and file intake."""

from __future__ import annotations

import io
import zipfile
from pathlib import Path

import pytest
from PIL import Image

from cleave.app import main
from cleave.config_manager import ENDPOINT_ENV
from cleave.intake import guess_mime_type, iter_inputs
from conftest import encode_image, solid_image


@pytest.fixture
def inputs(tmp_path: Path) -> Path:
    folder = tmp_path / "in"
    folder.mkdir()
    (folder / "red.png").write_bytes(encode_image(solid_image((20, 10)), "PNG"))
    (folder / "blue.jpg").write_bytes(encode_image(solid_image((8, 8), (0, 0, 255)), "JPEG"))
    (folder / "notes.txt").write_text("not an image")
    return folder


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENDPOINT_ENV, raising=False)


def _run(tmp_path: Path, *args: str) -> int:
    return main([*args, "--config", str(tmp_path / "config.json")])


def test_guess_mime_type() -> None:
    assert guess_mime_type("a.webp") == "image/webp"
    assert guess_mime_type("a.JPG") == "image/jpeg"
    assert guess_mime_type("a.unknownext") == "application/octet-stream"


def test_iter_inputs_skips_non_images(inputs: Path) -> None:
    names = [name for _, name, _ in iter_inputs([inputs])]
    assert names == ["blue.jpg", "red.png"]


def test_cli_writes_converted_files(tmp_path: Path, inputs: Path, capsys) -> None:
    out = tmp_path / "out"

    code = _run(tmp_path, str(inputs), "--format", "webp", "--ratio", "0.5", "--out", str(out))

    assert code == 0
    assert sorted(p.name for p in out.iterdir()) == ["blue_converted.webp", "red_converted.webp"]
    with Image.open(out / "red_converted.webp") as image:
        assert image.size == (10, 5)
    assert "red.png" in capsys.readouterr().out


def test_cli_writes_archive_for_vector_runs(tmp_path: Path, inputs: Path) -> None:
    out = tmp_path / "out"

    code = _run(tmp_path, str(inputs), "--vector", "--colors", "4", "--zip", "--out", str(out))

    assert code == 0
    data = (out / "cleave_batch.zip").read_bytes()
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert sorted(archive.namelist()) == ["blue_converted.svg", "red_converted.svg"]


def test_cli_reports_failures(tmp_path: Path, inputs: Path) -> None:
    (inputs / "broken.png").write_bytes(b"garbage")

    code = _run(tmp_path, str(inputs), "--format", "png", "--out", str(tmp_path / "out"))

    assert code == 1
    assert sorted(p.name for p in (tmp_path / "out").iterdir()) == [
        "blue_converted.png",
        "red_converted.png",
    ]


def test_cli_rejects_invalid_settings(tmp_path: Path, inputs: Path) -> None:
    assert _run(tmp_path, str(inputs), "--quality", "3") == 2


def test_cli_without_images(tmp_path: Path) -> None:
    text = tmp_path / "readme.txt"
    text.write_text("hello")
    assert _run(tmp_path, str(text)) == 1
