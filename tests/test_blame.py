"""Tests for the porcelain blame parser."""

import pytest
import os
import dataclasses

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from quill_pkg.blame import (
    LineRecord, RevisionRecord, merge_revision, parse_blame, parse_header_line, parse_metadata_line
)
from conftest import HASH_A, HASH_B


class TestParseBlame:
    """Test cases for parse_blame."""

    def test_empty_input(self):
        """Empty text gives two empty mappings."""
        result = parse_blame("")
        assert result.commit_data == {}
        assert result.line_data == {}

    def test_single_line(self):
        """A header and a content line produce one line and one revision."""
        result = parse_blame(f"{HASH_A} 3 3 2\n\thello")

        assert result.line_data[3] == LineRecord(
            hash=HASH_A, original_line=3, final_line=3, num_lines=2, code='hello'
        )
        assert result.commit_data[HASH_A] == RevisionRecord(hash=HASH_A)
        assert result.commit_data[HASH_A].author == ''
        assert result.commit_data[HASH_A].summary == ''

    def test_metadata_before_content(self):
        result = parse_blame(
            f"{HASH_A} 1 1 1\n"
            "author Jane Doe\n"
            "author-time 1670000000\n"
            "\thello\n"
        )
        record = result.commit_data[HASH_A]
        assert record.author == 'Jane Doe'
        assert record.author_time == '1670000000'

    def test_full_sample(self, sample_blame):
        """Every modelled header is picked up from realistic output."""
        result = parse_blame(sample_blame)

        assert list(result.commit_data) == [HASH_A, HASH_B]
        assert list(result.line_data) == [1, 2, 3, 4]

        first = result.commit_data[HASH_A]
        assert first.author == 'Jane Doe'
        assert first.author_mail == '<jane@example.com>'
        assert first.author_time == '1670000000'
        assert first.author_tz == '+0000'
        assert first.committer == 'Jane Doe'
        assert first.committer_mail == '<jane@example.com>'
        assert first.committer_time == '1670000100'
        assert first.committer_tz == '+0100'
        assert first.summary == 'Add first post'
        assert first.filename == 'content/blog/first.md'
        assert first.previous_hash == ''

        second = result.commit_data[HASH_B]
        assert second.author == 'John Smith'
        assert second.previous_hash == HASH_A
        assert second.previous_filename == 'content/blog/first.md'

        assert result.line_data[2].code == 'title: First'
        assert result.line_data[4].code == 'Hello there.'
        assert result.line_data[4].hash == HASH_B

    def test_missing_group_size_defaults(self, sample_blame):
        """Headers without the fourth token get num_lines of -1."""
        result = parse_blame(sample_blame)
        assert result.line_data[1].num_lines == 2
        assert result.line_data[2].num_lines == -1
        assert result.line_data[4].num_lines == -1

    def test_repeated_hash_does_not_collect_metadata(self):
        """Metadata only comes from the first block of a revision."""
        result = parse_blame(
            f"{HASH_A} 1 1 1\n"
            "author Jane Doe\n"
            "\tone\n"
            f"{HASH_A} 5 2 1\n"
            "author Someone Else\n"
            "summary Not a real header\n"
            "\ttwo\n"
        )
        record = result.commit_data[HASH_A]
        assert record.author == 'Jane Doe'
        assert record.summary == ''
        assert result.line_data[2].original_line == 5
        assert result.line_data[2].code == 'two'

    def test_metadata_after_content_is_ignored(self):
        result = parse_blame(
            f"{HASH_A} 1 1 1\n"
            "\tone\n"
            "author Late Arrival\n"
        )
        assert result.commit_data[HASH_A].author == ''

    def test_only_one_tab_is_stripped(self):
        result = parse_blame(f"{HASH_A} 1 1 1\n\t\tindented\tcode ")
        assert result.line_data[1].code == '\tindented\tcode '

    def test_empty_content_line(self):
        result = parse_blame(f"{HASH_A} 1 1 1\n\t")
        assert result.line_data[1].code == ''

    def test_content_without_header_is_ignored(self):
        result = parse_blame("\torphan\n")
        assert result.line_data == {}
        assert result.commit_data == {}

    def test_malformed_hash_is_ignored(self):
        """Tokens that are not exactly 40 characters are not headers."""
        result = parse_blame(
            f"{'a' * 39} 1 1 1\n"
            "\tnot blamed\n"
            f"{'a' * 41} 2 2 1\n"
            "\tnot blamed either\n"
        )
        assert result.line_data == {}
        assert result.commit_data == {}

    def test_non_numeric_line_numbers_are_ignored(self):
        result = parse_blame(f"{HASH_A} x y\n\tcode")
        assert result.line_data == {}

    def test_whitespace_lines_are_ignored(self):
        result = parse_blame(f"   \n\n{HASH_A} 1 1 1\n\tcode\n\n")
        assert list(result.line_data) == [1]

    def test_multi_word_values_keep_spacing(self):
        result = parse_blame(
            f"{HASH_A} 1 1 1\n"
            "author Jane  Q. Doe\n"
            "summary Fix: handle  double spaces\n"
            "\tx\n"
        )
        record = result.commit_data[HASH_A]
        assert record.author == 'Jane  Q. Doe'
        assert record.summary == 'Fix: handle  double spaces'

    def test_later_fields_overwrite_same_name_only(self):
        result = parse_blame(
            f"{HASH_A} 1 1 1\n"
            "author First Name\n"
            "summary Kept\n"
            "author Second Name\n"
            "\tx\n"
        )
        record = result.commit_data[HASH_A]
        assert record.author == 'Second Name'
        assert record.summary == 'Kept'

    def test_duplicate_line_number_latest_wins(self):
        result = parse_blame(
            f"{HASH_A} 1 1 1\n\told\n"
            f"{HASH_B} 1 1 1\n\tnew\n"
        )
        assert result.line_data[1].hash == HASH_B
        assert result.line_data[1].code == 'new'
        assert set(result.commit_data) == {HASH_A, HASH_B}

    def test_parsing_is_deterministic(self, sample_blame):
        assert parse_blame(sample_blame) == parse_blame(sample_blame)

    def test_records_are_immutable(self, sample_blame):
        result = parse_blame(sample_blame)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.commit_data[HASH_A].author = 'Someone'
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.line_data[1].code = 'changed'


class TestHeaderHelpers:
    """Test cases for the single-line helpers."""

    def test_parse_header_line(self):
        header = parse_header_line(f"{HASH_A} 7 9 3")
        assert header == LineRecord(hash=HASH_A, original_line=7, final_line=9, num_lines=3)

    def test_parse_header_line_rejects_short_lines(self):
        assert parse_header_line(f"{HASH_A} 7") is None
        assert parse_header_line("author Jane Doe") is None
        assert parse_header_line("") is None

    def test_parse_metadata_line_fields(self):
        assert parse_metadata_line("author-mail <jane@example.com>") == {'author_mail': '<jane@example.com>'}
        assert parse_metadata_line("committer Jane Doe") == {'committer': 'Jane Doe'}
        assert parse_metadata_line("filename content/blog/my post.md") == {'filename': 'content/blog/my post.md'}

    def test_parse_metadata_line_unknown(self):
        assert parse_metadata_line("boundary") == {}
        assert parse_metadata_line("encoding latin-1") == {}

    def test_parse_metadata_line_missing_value(self):
        assert parse_metadata_line("author-tz") == {'author_tz': ''}
        assert parse_metadata_line("summary") == {'summary': ''}

    def test_merge_revision_returns_new_record(self):
        original = RevisionRecord(hash=HASH_A, author='Jane Doe')
        merged = merge_revision(original, {'summary': 'Hello'})

        assert merged is not original
        assert merged.author == 'Jane Doe'
        assert merged.summary == 'Hello'
        assert original.summary == ''

    def test_merge_revision_empty_patch(self):
        original = RevisionRecord(hash=HASH_A)
        assert merge_revision(original, {}) is original
