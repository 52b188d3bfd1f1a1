"""
Tests for the command line interface
====================================

Run with: pytest tests/test_cli.py -v
"""

import json

import pytest

from vin_scanner.cli import main
from vin_scanner.core import RasterImage
from vin_scanner.providers import OCRProvider, OCRProviderFactory, ProviderConfig


class CannedProvider(OCRProvider):
    """Engine stub returning a fixed transcription."""

    TEXT = "شاسی\nNAAM01CA7KE123456"

    def __init__(self, config=None):
        super().__init__(config or ProviderConfig())

    @property
    def name(self):
        return "Canned"

    @property
    def is_available(self):
        return True

    def _open_session(self, language):
        return None

    def _recognize(self, session, image):
        return self.TEXT, 1.0, None


@pytest.fixture
def canned_provider(monkeypatch):
    monkeypatch.setitem(OCRProviderFactory._providers, "canned", CannedProvider)
    return "canned"


@pytest.fixture
def card_file(tmp_path):
    path = tmp_path / "card.png"
    path.write_bytes(RasterImage.blank(300, 200, (230, 230, 230, 255)).encode(".png"))
    return path


class TestScanCommand:
    """Tests for `vin-scanner scan`."""

    def test_prints_vin(self, canned_provider, card_file, capsys):
        exit_code = main(["scan", str(card_file), "--provider", canned_provider])
        out = capsys.readouterr().out
        assert exit_code == 0
        assert "VIN: NAAM01CA7KE123456" in out
        assert "OCR text:" in out

    def test_not_matched(self, canned_provider, card_file, capsys, monkeypatch):
        monkeypatch.setattr(CannedProvider, "TEXT", "nothing useful")
        exit_code = main(["scan", str(card_file), "-p", canned_provider])
        out = capsys.readouterr().out
        assert exit_code == 0
        assert "No VIN found in the image" in out
        assert "nothing useful" in out

    def test_json_output(self, canned_provider, card_file, capsys):
        main(["scan", str(card_file), "-p", canned_provider, "--json", "--no-preprocess"])
        payload = json.loads(capsys.readouterr().out)
        assert payload["outcome"] == "matched"
        assert payload["vin"] == "NAAM01CA7KE123456"
        assert payload["states"] == ["idle", "cropping", "enhancing", "recognizing", "matching", "matched"]

    def test_missing_image(self, tmp_path, capsys):
        assert main(["scan", str(tmp_path / "nope.jpg")]) == 1
        assert "Image not found" in capsys.readouterr().out

    def test_unknown_provider(self, card_file, capsys):
        """Test an unregistered engine name is reported, not raised."""
        assert main(["scan", str(card_file), "--provider", "bogus"]) == 1
        out = capsys.readouterr().out
        assert out.startswith("Error: ")
        assert "Unknown provider type" in out


class TestBatchCommand:
    """Tests for `vin-scanner batch`."""

    def test_writes_results(self, canned_provider, card_file, tmp_path, capsys):
        output = tmp_path / "results.json"
        exit_code = main(["batch", str(card_file.parent), "-p", canned_provider, "-o", str(output)])

        assert exit_code == 0
        results = json.loads(output.read_text(encoding="utf-8"))
        assert results[0]["filename"] == "card.png"
        assert results[0]["vin"] == "NAAM01CA7KE123456"

    def test_unknown_provider(self, card_file, capsys):
        assert main(["batch", str(card_file.parent), "-p", "bogus"]) == 1
        out = capsys.readouterr().out
        assert "Error: Unknown provider type" in out
        assert "Processing" not in out

    def test_empty_folder(self, tmp_path, capsys):
        empty = tmp_path / "empty"
        empty.mkdir()
        assert main(["batch", str(empty)]) == 1


class TestAnalyzeCommand:
    """Tests for `vin-scanner analyze`."""

    def test_report(self, card_file, capsys):
        assert main(["analyze", str(card_file)]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["crop_region"] == {"x": 15, "y": 110, "width": 270, "height": 70}
        assert report["brightness"] == pytest.approx(230 / 255, abs=1e-3)
        assert report["brightness_factor"] == 0.0

    def test_missing_image(self, tmp_path, capsys):
        assert main(["analyze", str(tmp_path / "nope.png")]) == 1


class TestNormalizeCommand:
    """Tests for `vin-scanner normalize`."""

    def test_normalizes_record(self, tmp_path, capsys):
        path = tmp_path / "record.json"
        path.write_text(json.dumps({"vin": "NAAM01CA7KE123456", "confidence": {"vin": 3}}), encoding="utf-8")

        assert main(["normalize", str(path)]) == 0
        envelope = json.loads(capsys.readouterr().out)
        assert envelope["ok"] is True
        assert envelope["data"]["confidence"]["vin"] == 1.0

    def test_invalid_json(self, tmp_path, capsys):
        path = tmp_path / "record.json"
        path.write_text("{not json", encoding="utf-8")

        assert main(["normalize", str(path)]) == 1
        envelope = json.loads(capsys.readouterr().out)
        assert envelope["ok"] is False
        assert envelope["error"]["message"] == "Invalid card record"


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()
