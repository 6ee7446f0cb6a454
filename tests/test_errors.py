"""Tests for error types and user-facing error messages."""

import pytest

from llm_gamelist.services.errors import (
    AppError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    FileSystemError,
    GenerationError,
    ImageGenerationError,
    ModelLoadError,
    ParseError,
    SerializationError,
    describe_error,
)


class TestErrorTypes:
    """Test categories, severity and recoverability of each error type."""

    def test_file_system_error_permission_suggestions(self) -> None:
        error = FileSystemError(
            "Could not prepare output directory",
            original_error=PermissionError("denied"),
            path="/out",
            operation="prepare",
        )

        assert error.category == ErrorCategory.FILE_SYSTEM
        assert error.severity == ErrorSeverity.CRITICAL
        assert not error.recoverable
        assert "Check file/directory permissions" in error.suggested_actions
        assert error.technical_details is not None
        assert error.technical_details.startswith("Path: /out")
        assert "PermissionError: denied" in error.technical_details

    def test_file_system_error_missing_directory_suggestions(self) -> None:
        error = FileSystemError("Input directory not found", original_error=FileNotFoundError("roms"))

        assert "Verify the directory path is correct" in error.suggested_actions

    def test_configuration_error_details(self) -> None:
        error = ConfigurationError(
            "gpuLayers must be -1 (all layers) or more",
            setting="gpuLayers",
            current_value=-4,
            expected="-1 or more",
        )

        assert error.category == ErrorCategory.CONFIGURATION
        assert "Expected: -1 or more" in error.suggested_actions
        assert error.technical_details == "Setting: gpuLayers\nCurrent: -4"

    def test_model_load_error_is_fatal(self) -> None:
        error = ModelLoadError("Could not load the language model", model="model.gguf")

        assert error.category == ErrorCategory.MODEL
        assert not error.recoverable
        assert error.technical_details == "Model: model.gguf"

    def test_generation_errors_are_recoverable(self) -> None:
        error = GenerationError(
            "Language model call failed",
            file_label='rom file "sonic.zip"',
            original_error=RuntimeError("decode failed"),
        )

        assert error.recoverable
        assert error.severity == ErrorSeverity.WARNING
        assert 'Label: rom file "sonic.zip"' in (error.technical_details or "")
        assert "RuntimeError: decode failed" in (error.technical_details or "")

    def test_parse_error_is_a_generation_error(self) -> None:
        response = "x" * 500
        error = ParseError("Model response is not valid JSON", file_label="f", response_text=response)

        assert isinstance(error, GenerationError)
        assert error.response_text == response
        assert "Response: " + "x" * 200 in (error.technical_details or "")
        assert "x" * 201 not in (error.technical_details or "")

    def test_image_error_points_at_isolation_flag(self) -> None:
        error = ImageGenerationError("Cover generation failed", game_name="Sonic")

        assert error.category == ErrorCategory.IMAGE
        assert not error.recoverable
        assert any("--isolateImageFailures" in action for action in error.suggested_actions)

    def test_serialization_error(self) -> None:
        error = SerializationError("Could not write gamelist", path="/out/gamelist.xml")

        assert error.category == ErrorCategory.SERIALIZATION
        assert error.path == "/out/gamelist.xml"


class TestDescribeError:
    """Test formatted messages for the command line."""

    def test_includes_suggestions(self) -> None:
        message = describe_error(FileSystemError("Input directory not found"))

        assert message.startswith("Input directory not found")
        assert "Suggested actions:" in message
        assert "  • Check the path and permissions" in message

    def test_suggestions_can_be_omitted(self) -> None:
        message = describe_error(FileSystemError("Input directory not found"), include_suggestions=False)

        assert message == "Input directory not found"

    def test_limits_to_three_suggestions(self) -> None:
        error = AppError("Something broke", suggested_actions=["a", "b", "c", "d"])

        message = describe_error(error)

        assert "  • c" in message
        assert "  • d" not in message

    @pytest.mark.parametrize("error", [ValueError("bad"), KeyError("missing")])
    def test_unexpected_errors(self, error: Exception) -> None:
        message = describe_error(error)

        assert message.startswith("An unexpected error occurred: ")
        assert type(error).__name__ in message
