"""Tests for resource name and password generation."""

import string

import pytest

from tutorial_runner.constants import PASSWORD_SYMBOLS
from tutorial_runner.utils.naming import (
    SUFFIX_ALPHABET,
    ResourceNamer,
    generate_hex_suffix,
    generate_password,
    generate_suffix,
)


class TestGenerateSuffix:
    """Tests for generate_suffix."""

    def test_length_and_alphabet(self) -> None:
        """Test suffix length and characters."""
        suffix = generate_suffix(12)

        assert len(suffix) == 12
        assert set(suffix) <= set(SUFFIX_ALPHABET)

    def test_suffixes_differ(self) -> None:
        """Test that consecutive suffixes are not the same."""
        assert len({generate_suffix() for _ in range(20)}) > 1

    @pytest.mark.parametrize(("length", "alphabet"), [(0, "abc"), (4, "")])
    def test_invalid_arguments(self, length: int, alphabet: str) -> None:
        """Test argument validation."""
        with pytest.raises(ValueError):
            generate_suffix(length, alphabet)

    def test_hex_suffix(self) -> None:
        """Test hexadecimal suffixes."""
        suffix = generate_hex_suffix(3)

        assert len(suffix) == 6
        assert set(suffix) <= set(string.hexdigits.lower())


class TestGeneratePassword:
    """Tests for generate_password."""

    def test_contains_every_class(self) -> None:
        """Test that every character class is present."""
        for _ in range(20):
            password = generate_password(12)

            assert len(password) == 12
            assert any(c in string.ascii_lowercase for c in password)
            assert any(c in string.ascii_uppercase for c in password)
            assert any(c in string.digits for c in password)
            assert any(c in PASSWORD_SYMBOLS for c in password)

    def test_custom_symbols(self) -> None:
        """Test restricting the symbol set."""
        password = generate_password(8, symbols="!")

        assert "!" in password
        assert not any(c in "#$%^&*()_+" for c in password)

    @pytest.mark.parametrize(("length", "symbols"), [(3, "!"), (10, "")])
    def test_invalid_arguments(self, length: int, symbols: str) -> None:
        """Test argument validation."""
        with pytest.raises(ValueError):
            generate_password(length, symbols)


class TestResourceNamer:
    """Tests for ResourceNamer."""

    def test_name_format(self) -> None:
        """Test the prefix-kind-suffix layout."""
        namer = ResourceNamer(prefix="neptune", suffix="a1b2c3d4")

        assert namer.name("cluster") == "neptune-cluster-a1b2c3d4"
        assert namer.name("db", separator="_") == "neptune_db_a1b2c3d4"

    def test_suffix_shared_across_names(self) -> None:
        """Test that all names from one namer share the suffix."""
        namer = ResourceNamer()

        assert namer.name("vpc").endswith(namer.suffix)
        assert namer.name("subnet").endswith(namer.suffix)
        assert len(namer.suffix) == 8

    def test_lowercase(self) -> None:
        """Test lowercasing and opting out of it."""
        namer = ResourceNamer(prefix="Tut", suffix="ABC1")

        assert namer.name("Bucket") == "tut-bucket-abc1"
        assert namer.name("Bucket", lowercase=False) == "Tut-Bucket-ABC1"

    def test_max_length_truncates_head(self) -> None:
        """Test that long names keep the full suffix."""
        namer = ResourceNamer(prefix="tutorial", suffix="12345678")

        name = namer.name("athena-results", max_length=20)

        assert len(name) <= 20
        assert name.endswith("-12345678")
        assert not name.startswith("-")

    def test_max_length_suffix_only(self) -> None:
        """Test that a tiny limit leaves just the suffix."""
        namer = ResourceNamer(prefix="tut", suffix="abcd")

        assert namer.name("vpc", max_length=5) == "abcd"

    def test_max_length_too_short(self) -> None:
        """Test that the suffix must fit."""
        namer = ResourceNamer(suffix="abcdefgh")

        with pytest.raises(ValueError, match="too short"):
            namer.name("vpc", max_length=4)

    def test_empty_prefix(self) -> None:
        """Test names without a prefix."""
        assert ResourceNamer(prefix="", suffix="x1").name("role") == "role-x1"
