"""Tests for the command-line interface."""

from unittest.mock import patch

import pytest

from arabic_text_extractor import main as cli
from arabic_text_extractor.config import OCREngine, Stage
from arabic_text_extractor.exceptions import ConfigurationError
from arabic_text_extractor.ocr.engine import RecognitionAdapter

from tests.conftest import FakeBackend


class TestParsePages:
    def test_single_pages(self):
        assert cli.parse_pages("1,3") == [0, 2]

    def test_ranges(self):
        assert cli.parse_pages("2-4, 1") == [0, 1, 2, 3]

    def test_duplicates_removed(self):
        assert cli.parse_pages("1,1-2") == [0, 1]


class TestParseThresholds:
    def test_values(self):
        assert cli.parse_thresholds(["variants=90", " original = 80"]) == {"variants": 90.0, "original": 80.0}

    def test_missing_separator(self):
        with pytest.raises(ConfigurationError):
            cli.parse_thresholds(["variants90"])

    def test_not_a_number(self):
        with pytest.raises(ConfigurationError):
            cli.parse_thresholds(["variants=high"])


class TestBuildConfig:
    def test_defaults(self):
        config = cli.build_config(cli.parse_args(["scan.png"]))
        assert config.languages == ["ara"]
        assert config.max_preprocessing_attempts == 3
        assert config.enable_advanced_preprocessing is True
        assert config.enable_dictionary_correction is True
        assert config.recognition.engine is OCREngine.TESSERACT

    def test_options(self):
        args = cli.parse_args([
            "scan.png",
            "--languages", "ara,eng",
            "--max-attempts", "5",
            "--threshold", "variants=90",
            "--variants", "arabic_adaptive, original",
            "--no-advanced-preprocessing",
            "--timeout", "12",
            "--no-dictionary",
            "--engine", "easyocr",
        ])
        config = cli.build_config(args)
        assert config.languages == ["ara", "eng"]
        assert config.max_preprocessing_attempts == 5
        assert config.threshold_for(Stage.PREPROCESSED_VARIANTS) == 90.0
        assert config.variants == ["arabic_adaptive", "original"]
        assert config.enable_advanced_preprocessing is False
        assert config.deadline_seconds == 12.0
        assert config.enable_dictionary_correction is False
        assert config.recognition.engine is OCREngine.EASYOCR

    def test_unknown_variant(self):
        with pytest.raises(ConfigurationError):
            cli.build_config(cli.parse_args(["scan.png", "--variants", "sepia"]))


class TestMain:
    def test_missing_input(self, tmp_path, capsys):
        assert cli.main([str(tmp_path / "missing.png")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_bad_threshold(self, tmp_path, text_png, capsys):
        path = tmp_path / "scan.png"
        path.write_bytes(text_png)
        assert cli.main([str(path), "--threshold", "nonsense"]) == 1
        assert "STAGE=VALUE" in capsys.readouterr().err

    def test_extracts_image(self, tmp_path, text_png, capsys):
        path = tmp_path / "scan.png"
        path.write_bytes(text_png)
        adapter = RecognitionAdapter(FakeBackend(confidences=[90], text="مرحبا"))
        with patch.object(RecognitionAdapter, "from_config", return_value=adapter):
            assert cli.main([str(path), "--no-dictionary"]) == 0
        out = capsys.readouterr().out
        assert "مرحبا" in out
        assert "variant:arabic_high_contrast" in out

    def test_saves_output(self, tmp_path, text_png):
        path = tmp_path / "scan.png"
        path.write_bytes(text_png)
        output = tmp_path / "text.txt"
        adapter = RecognitionAdapter(FakeBackend(confidences=[90], text="مرحبا"))
        with patch.object(RecognitionAdapter, "from_config", return_value=adapter):
            assert cli.main([str(path), "--no-dictionary", "-o", str(output)]) == 0
        assert output.read_text(encoding="utf-8") == "مرحبا"

    def test_extraction_failure(self, tmp_path, text_png, capsys):
        path = tmp_path / "scan.png"
        path.write_bytes(text_png)
        with patch.object(RecognitionAdapter, "from_config", side_effect=ImportError("pytesseract missing")):
            assert cli.main([str(path)]) == 1
        assert "pytesseract missing" in capsys.readouterr().err
