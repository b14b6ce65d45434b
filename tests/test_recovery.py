"""Tests for the recovery planner."""

import pytest

from intake.exceptions import AIError, FileError, GitError, ParsingError
from intake.recovery import (
    RECOVERABLE_SUBTYPES,
    RECOVERY_POLICY,
    ErrorCategory,
    RecoveryKind,
    classify,
    format_error_message,
    is_recoverable,
)

# (category, subtype) -> (kind, max_retries, delay, fallback)
EXPECTED = {
    ("file", "file_too_large"): (RecoveryKind.USER_ACTION, None, None, None),
    ("file", "unsupported_format"): (RecoveryKind.SKIP, None, None, None),
    ("file", "read_failed"): (RecoveryKind.RETRY, 3, 1000, None),
    ("git", "network_failed"): (RecoveryKind.RETRY, 3, 2000, None),
    ("git", "auth_failed"): (RecoveryKind.USER_ACTION, None, None, None),
    ("git", "repo_not_found"): (RecoveryKind.USER_ACTION, None, None, None),
    ("git", "private_repo"): (RecoveryKind.FALLBACK, None, None, "file_upload"),
    ("parsing", "syntax_error"): (RecoveryKind.SKIP, None, None, None),
    ("parsing", "encoding_error"): (RecoveryKind.RETRY, 2, 500, None),
    ("parsing", "file_too_large"): (RecoveryKind.FALLBACK, None, None, "chunk_processing"),
    ("ai", "api_limit"): (RecoveryKind.RETRY, 3, 60000, None),
    ("ai", "model_unavailable"): (RecoveryKind.FALLBACK, None, None, "local_analysis"),
    ("ai", "context_too_long"): (RecoveryKind.FALLBACK, None, None, "context_optimization"),
    ("ai", "network_timeout"): (RecoveryKind.RETRY, 2, 5000, None),
}


class TestPolicyTable:
    def test_table_matches_expected_rows(self):
        assert {(c.value, s) for c, s in RECOVERY_POLICY} == set(EXPECTED)

    @pytest.mark.parametrize("key", sorted(EXPECTED))
    def test_classify_each_row(self, key):
        category, subtype = key
        kind, retries, delay, fallback = EXPECTED[key]

        action = classify({"type": subtype, "message": "boom"}, category)

        assert action.kind == kind
        assert action.max_retries == retries
        assert action.delay == delay
        assert action.fallback_strategy == fallback
        assert action.message

    @pytest.mark.parametrize("category", ["file", "git", "parsing", "ai"])
    def test_unrecognized_subtype_needs_user(self, category):
        action = classify({"type": "cosmic_ray", "message": "odd"}, category)
        assert action.kind == RecoveryKind.USER_ACTION
        assert "odd" in action.message

    def test_missing_subtype_needs_user(self):
        action = classify(ValueError("plain"), ErrorCategory.FILE)
        assert action.kind == RecoveryKind.USER_ACTION
        assert action.message == "Unknown file error: plain"


class TestMessages:
    def test_file_name_interpolated(self):
        action = classify(FileError("x", "read_failed", file_name="main.py"))
        assert action.message == 'Failed to read "main.py". Retrying...'

    def test_git_url_interpolated(self):
        action = classify(GitError("x", "repo_not_found", git_url="https://x/y"))
        assert "https://x/y" in action.message

    def test_syntax_line_interpolated(self):
        action = classify(ParsingError("x", "syntax_error", file_name="a.py", line=7))
        assert action.message == 'Syntax error in "a.py" at line 7. Skipping this file.'

    def test_api_limit_uses_retry_after(self):
        action = classify(AIError("x", "api_limit", retry_after=30))
        assert action.delay == 30000
        assert "30 seconds" in action.message

    def test_api_limit_default_retry_after(self):
        action = classify(AIError("x", "api_limit"))
        assert action.delay == 60000
        assert "60 seconds" in action.message

    def test_camel_case_mapping_fields(self):
        action = classify({"type": "repo_not_found", "gitUrl": "https://x/y"}, "git")
        assert "https://x/y" in action.message
        action = classify({"type": "read_failed", "fileName": "main.py"}, "file")
        assert "main.py" in action.message
        action = classify({"type": "api_limit", "retryAfter": 15}, "ai")
        assert action.delay == 15000

    def test_snake_case_wins_over_camel_case(self):
        err = {"type": "read_failed", "file_name": "a.py", "fileName": "b.py"}
        assert "a.py" in classify(err, "file").message

    @pytest.mark.parametrize("retry_after", ["soon", [], "nan-ish"])
    def test_non_numeric_retry_after_uses_default(self, retry_after):
        action = classify({"type": "api_limit", "retry_after": retry_after}, "ai")
        assert action.delay == 60000
        assert "60 seconds" in action.message

    def test_fractional_retry_after(self):
        action = classify(AIError("x", "api_limit", retry_after=1.5))
        assert action.delay == 1500
        assert "1.5 seconds" in action.message

    def test_category_taken_from_error(self):
        action = classify(GitError("x", "private_repo"))
        assert action.kind == RecoveryKind.FALLBACK

    def test_explicit_category_wins(self):
        # file_too_large means different things for file and parsing errors
        err = FileError("x", "file_too_large", file_name="a.py")
        assert classify(err, "parsing").kind == RecoveryKind.FALLBACK
        assert classify(err).kind == RecoveryKind.USER_ACTION


class TestGeneralCategory:
    def test_general_is_user_action(self):
        action = classify(RuntimeError("kaboom"))
        assert action.kind == RecoveryKind.USER_ACTION
        assert action.message == "Unexpected Error: kaboom"

    @pytest.mark.parametrize(
        "error,prefix",
        [
            (FileError("m", "read_failed"), "File Upload Error"),
            (GitError("m", "auth_failed"), "Git Repository Error"),
            (ParsingError("m", "syntax_error"), "Code Parsing Error"),
            (AIError("m", "api_limit"), "AI Analysis Error"),
            (KeyError("m"), "Unexpected Error"),
        ],
    )
    def test_format_error_message_prefix(self, error, prefix):
        assert format_error_message(error).startswith(f"{prefix}: ")

    def test_general_with_typed_error_still_user_action(self):
        action = classify(FileError("m", "read_failed"), ErrorCategory.GENERAL)
        assert action.kind == RecoveryKind.USER_ACTION
        assert action.message == "File Upload Error: m"


class TestIsRecoverable:
    @pytest.mark.parametrize("key", sorted(EXPECTED))
    def test_matches_fixed_set(self, key):
        _, subtype = key
        assert is_recoverable({"type": subtype}) == (subtype in RECOVERABLE_SUBTYPES)

    def test_fixed_set(self):
        assert RECOVERABLE_SUBTYPES == {
            "network_failed",
            "api_limit",
            "network_timeout",
            "read_failed",
            "encoding_error",
        }

    def test_independent_of_action(self):
        # encoding_error retries, but a file-category encoding_error is unknown
        # to the table and needs the user; still recoverable
        err = {"type": "encoding_error"}
        assert classify(err, "file").kind == RecoveryKind.USER_ACTION
        assert is_recoverable(err)

    def test_untyped_errors_not_recoverable(self):
        assert not is_recoverable(ValueError("x"))
        assert not is_recoverable({"message": "no type"})
