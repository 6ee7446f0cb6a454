"""End-to-end tests for the command-line entry point with stubbed models."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from lxml import etree

from llm_gamelist.main import create_orchestrator, load_run_config, main, parse_arguments, run
from llm_gamelist.services.image_generator import DiffusionImageGenerator
from llm_gamelist.services.metadata_generator import LlamaMetadataGenerator

from conftest import SONIC_RESPONSE, StubMetadataGenerator


@pytest.fixture
def sonic_and_bad(tmp_path: Path) -> Path:
    directory = tmp_path / "roms"
    directory.mkdir()
    (directory / "sonic.zip").write_bytes(b"PK")
    (directory / "bad.zip").write_bytes(b"PK")
    return directory


def stub_factory(generator: StubMetadataGenerator):
    return lambda config: generator


class TestParseArguments:
    def test_required_flags_and_defaults(self) -> None:
        args = parse_arguments(["-m", "model.gguf", "-i", "roms", "-o", "out"])

        assert args.model_path == Path("model.gguf")
        assert args.input_dir == Path("roms")
        assert args.out_dir == Path("out")
        assert args.gpu_layers == 1
        assert args.images is False
        assert args.isolate_image_failures is None
        assert args.log_level == "INFO"

    def test_long_flags(self) -> None:
        args = parse_arguments([
            "--modelPath", "model.gguf",
            "--inputDir", "roms",
            "--outDir", "out",
            "--gpuLayers", "35",
            "--images",
            "--isolateImageFailures",
        ])

        assert args.gpu_layers == 35
        assert args.images is True
        assert args.isolate_image_failures is True

    def test_missing_required_flag_exits(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            parse_arguments(["-m", "model.gguf", "-i", "roms"])

        assert exc_info.value.code == 2


class TestCreateOrchestrator:
    def test_text_only_run_has_no_image_generator(self) -> None:
        args = parse_arguments(["-m", "model.gguf", "-i", "roms", "-o", "out", "-g", "8"])

        orchestrator = create_orchestrator(load_run_config(args))

        assert isinstance(orchestrator.metadata_generator, LlamaMetadataGenerator)
        assert orchestrator.metadata_generator.config.gpu_layers == 8
        assert orchestrator.image_generator is None

    def test_images_flag_adds_diffusion_generator(self) -> None:
        args = parse_arguments(["-m", "model.gguf", "-i", "roms", "-o", "out", "--images"])

        orchestrator = create_orchestrator(load_run_config(args))

        assert isinstance(orchestrator.image_generator, DiffusionImageGenerator)
        assert orchestrator.image_generator.config.inference_steps == 30


class TestRun:
    """End-to-end runs through run() with the language model stubbed out."""

    def test_sonic_succeeds_and_bad_is_skipped(self, sonic_and_bad: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"
        generator = StubMetadataGenerator(responses={"sonic.zip": SONIC_RESPONSE}, fail_for={"bad.zip"})
        args = parse_arguments(["-m", str(tmp_path / "model.gguf"), "-i", str(sonic_and_bad), "-o", str(out)])

        with patch("llm_gamelist.main.LlamaMetadataGenerator", side_effect=stub_factory(generator)):
            exit_code = run(args)

        assert exit_code == 0
        games = etree.parse(str(out / "gamelist.xml")).getroot().findall("game")
        assert len(games) == 1
        assert games[0].findtext("name") == "Sonic the Hedgehog"
        assert games[0].findtext("releasedate") == "1991-06-23"
        assert generator.close_count == 1

    def test_missing_input_directory_exits_non_zero(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        out = tmp_path / "out"
        args = parse_arguments(["-m", "model.gguf", "-i", str(tmp_path / "missing"), "-o", str(out)])

        with patch("llm_gamelist.main.LlamaMetadataGenerator", side_effect=stub_factory(StubMetadataGenerator())):
            exit_code = run(args)

        assert exit_code == 1
        assert not (out / "gamelist.xml").exists()
        assert "Input directory not found" in capsys.readouterr().err

    def test_invalid_config_file_exits_non_zero(self, sonic_and_bad: Path, tmp_path: Path) -> None:
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"context_size": "big"}))
        args = parse_arguments([
            "-m", "model.gguf", "-i", str(sonic_and_bad), "-o", str(tmp_path / "out"),
            "--config", str(config_path),
        ])

        assert run(args) == 1
        assert not (tmp_path / "out").exists()

    def test_keyboard_interrupt_exits_130(self, sonic_and_bad: Path, tmp_path: Path) -> None:
        args = parse_arguments(["-m", "model.gguf", "-i", str(sonic_and_bad), "-o", str(tmp_path / "out")])

        with patch("llm_gamelist.main.create_orchestrator", side_effect=KeyboardInterrupt):
            assert run(args) == 130


class TestMain:
    def test_main_exits_zero_on_success(self, sonic_and_bad: Path, tmp_path: Path) -> None:
        generator = StubMetadataGenerator(responses={"sonic.zip": SONIC_RESPONSE}, fail_for={"bad.zip"})
        argv = ["-m", "model.gguf", "-i", str(sonic_and_bad), "-o", str(tmp_path / "out")]

        with patch("llm_gamelist.main.setup_logging"), \
                patch("llm_gamelist.main.LlamaMetadataGenerator", side_effect=stub_factory(generator)):
            with pytest.raises(SystemExit) as exc_info:
                main(argv)

        assert exc_info.value.code == 0
