"""
Tests for subject identifier validation.
"""

from __future__ import annotations

import pytest

from agent_pipeline.utils.validators import SubjectValidationError, validate_subject_id


class TestValidateSubjectId:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("AAPL", "AAPL"),
            (" msft ", "MSFT"),
            ("brk.b", "BRK.B"),
            ("BRK-A", "BRK-A"),
            ("000001", "000001"),
            ("600519.SH", "600519.SH"),
        ],
    )
    def test_valid(self, raw: str, expected: str) -> None:
        assert validate_subject_id(raw) == expected

    @pytest.mark.parametrize(
        "raw, reason",
        [
            ("", "empty"),
            ("   ", "empty"),
            ("ABCDEFGHIJKLM", "maximum length"),
            ("AAPL<script>", "invalid characters"),
            ("A$B", "invalid characters"),
            ("None", "reserved"),
            ("NaN", "reserved"),
            (".AAPL", "must start"),
            ("AA PL", "must start"),
        ],
    )
    def test_invalid(self, raw: str, reason: str) -> None:
        with pytest.raises(SubjectValidationError) as exc_info:
            validate_subject_id(raw)

        assert reason in str(exc_info.value)
        assert exc_info.value.subject_id == raw

    def test_none(self) -> None:
        with pytest.raises(SubjectValidationError):
            validate_subject_id(None)

    def test_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            validate_subject_id("")
