"""Tests for the constants module."""

from tutorial_runner import constants


class TestNamingConstants:
    """Tests for resource naming constants."""

    def test_suffix_and_password_lengths(self) -> None:
        """Test default lengths are usable."""
        assert constants.DEFAULT_SUFFIX_LENGTH == 8
        assert constants.DEFAULT_PASSWORD_LENGTH >= 12

    def test_password_symbols_exclude_mq_forbidden_characters(self) -> None:
        """Test that generated passwords are accepted by Amazon MQ."""
        for forbidden in (",", ":", "="):
            assert forbidden not in constants.PASSWORD_SYMBOLS


class TestCleanupConstants:
    """Tests for cleanup prompt constants."""

    def test_questions_end_with_hint(self) -> None:
        """Test that both cleanup questions show the y/n hint."""
        assert constants.CLEANUP_QUESTION.endswith("(y/n): ")
        assert constants.CLEANUP_ERROR_QUESTION.endswith("(y/n): ")
        assert constants.CLEANUP_ERROR_QUESTION.startswith("An error occurred.")

    def test_affirmative_answers(self) -> None:
        """Test that y and yes are accepted."""
        assert constants.AFFIRMATIVE_ANSWERS == ("y", "yes")


class TestErrorCodeSets:
    """Tests for AWS error code classification sets."""

    def test_sets_are_disjoint(self) -> None:
        """Test that no error code belongs to two categories."""
        groups = [
            constants.THROTTLING_ERROR_CODES,
            constants.PERMISSION_ERROR_CODES,
            constants.NOT_FOUND_ERROR_CODES,
            constants.IN_USE_ERROR_CODES,
            constants.VALIDATION_ERROR_CODES,
        ]
        for index, group in enumerate(groups):
            for other in groups[index + 1 :]:
                assert not group & other

    def test_dependency_violation_is_in_use(self) -> None:
        """Test that DependencyViolation is retried during teardown."""
        assert "DependencyViolation" in constants.IN_USE_ERROR_CODES

    def test_s3_service_name_mapping(self) -> None:
        """Test that S3 API calls use the s3api CLI command."""
        assert constants.CLI_SERVICE_NAMES["s3"] == "s3api"

    def test_config_service_name_mapping(self) -> None:
        """Test that AWS Config calls use the configservice CLI command."""
        assert constants.CLI_SERVICE_NAMES["config"] == "configservice"
