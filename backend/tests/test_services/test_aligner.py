"""
Tests for the sequence aligner.

Tests cover:
- Reconstruction of both inputs from the edit script
- Minimality against a reference LCS
- Edge cases and merged script shape
- Bounded searches
"""
import random

import pytest

from policy_review.core.exceptions import AlignmentTimeoutError
from policy_review.services import aligner
from policy_review.services.aligner import (
    DiffOp,
    Granularity,
    OpKind,
    align,
    cleanup_semantic,
    edit_distance,
    source_text,
    target_text,
    tokenize,
)


def lcs_length(a, b):
    """Reference dynamic-programming LCS."""
    previous = [0] * (len(b) + 1)
    for item_a in a:
        current = [0]
        for j, item_b in enumerate(b):
            if item_a == item_b:
                current.append(previous[j] + 1)
            else:
                current.append(max(previous[j + 1], current[j]))
        previous = current
    return previous[-1]


def random_pairs(seed, count, alphabet="abc ", max_len=12):
    rng = random.Random(seed)
    for _ in range(count):
        a = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, max_len)))
        b = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, max_len)))
        yield a, b


class TestEdgeCases:
    """Empty and identical inputs."""

    def test_empty_old_text_is_single_insert(self):
        assert align("", "abc") == [DiffOp(OpKind.INSERT, "abc", 0, 0)]

    def test_empty_new_text_is_single_delete(self):
        assert align("abc", "") == [DiffOp(OpKind.DELETE, "abc", 0, 0)]

    def test_identical_texts_are_single_equal(self):
        assert align("same text", "same text") == [DiffOp(OpKind.EQUAL, "same text", 0, 0)]

    def test_both_empty(self):
        assert align("", "") == []

    def test_unicode_code_points(self):
        ops = align("naïve café 🙂", "naive café 🙃")
        assert source_text(ops) == "naïve café 🙂"
        assert target_text(ops) == "naive café 🙃"
        assert edit_distance(ops) == 4


class TestCorrectness:
    """Reconstruction and minimality on seeded random inputs."""

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_reconstructs_both_texts(self, seed):
        for a, b in random_pairs(seed, 150):
            ops = align(a, b)
            assert source_text(ops) == a
            assert target_text(ops) == b

    @pytest.mark.parametrize("seed", [4, 5, 6])
    def test_edit_script_is_minimal(self, seed):
        for a, b in random_pairs(seed, 150):
            ops = align(a, b)
            assert edit_distance(ops) == len(a) + len(b) - 2 * lcs_length(a, b), (a, b)

    def test_offsets_point_into_inputs(self):
        a = "The policy applies to all employees and contractors."
        b = "This policy applies to employees, agents and contractors."
        for op in align(a, b):
            if op.kind is not OpKind.INSERT:
                assert a[op.a_start:op.a_end] == op.text
            if op.kind is not OpKind.DELETE:
                assert b[op.b_start:op.b_end] == op.text

    def test_deletions_precede_insertions(self):
        for a, b in random_pairs(7, 100):
            ops = align(a, b)
            for first, second in zip(ops, ops[1:]):
                assert first.kind is not second.kind
                assert not (first.kind is OpKind.INSERT and second.kind is OpKind.DELETE)

    def test_large_document_with_few_edits(self):
        rng = random.Random(11)
        words = ["client", "record", "report", "verify", "identity", "funds", "the", "and", "must"]
        old = " ".join(rng.choice(words) for _ in range(5000))
        new = old[:1000] + "UPDATED" + old[1000:15000] + old[15010:] + " appended clause."

        ops = align(old, new)

        assert source_text(ops) == old
        assert target_text(ops) == new
        assert edit_distance(ops) <= len("UPDATED") + 10 + len(" appended clause.")


class TestGranularity:
    """Word and line tokenisation."""

    def test_tokens_reassemble_text(self):
        text = "Section 4.2:\n  Report within 30 days!\n"
        for granularity in Granularity:
            assert "".join(tokenize(text, granularity)) == text

    def test_word_granularity_keeps_words_whole(self):
        ops = align("report the funds", "report all funds", Granularity.WORD)
        assert [(op.kind, op.text) for op in ops] == [
            (OpKind.EQUAL, "report "),
            (OpKind.DELETE, "the"),
            (OpKind.INSERT, "all"),
            (OpKind.EQUAL, " funds"),
        ]

    def test_line_granularity(self):
        old = "first\nsecond\nthird\n"
        new = "first\n2nd\nthird\n"
        ops = align(old, new, Granularity.LINE)
        assert [(op.kind, op.text) for op in ops] == [
            (OpKind.EQUAL, "first\n"),
            (OpKind.DELETE, "second\n"),
            (OpKind.INSERT, "2nd\n"),
            (OpKind.EQUAL, "third\n"),
        ]


class TestBoundedSearch:
    """Edit distance ceiling and time budget."""

    def test_ceiling_exceeded_raises(self):
        with pytest.raises(AlignmentTimeoutError):
            align("a" * 50, "b" * 50, max_edit_distance=10)

    def test_length_difference_over_ceiling_raises(self):
        with pytest.raises(AlignmentTimeoutError) as excinfo:
            align("xy", "k" * 40, max_edit_distance=5)
        assert excinfo.value.edit_distance_floor == 38

    def test_distance_equal_to_ceiling_is_accepted(self):
        assert edit_distance(align("axbyc", "abzc")) == 3
        ops = align("axbyc", "abzc", max_edit_distance=3)
        assert source_text(ops) == "axbyc"
        assert target_text(ops) == "abzc"

    def test_distance_one_over_ceiling_raises(self):
        with pytest.raises(AlignmentTimeoutError) as excinfo:
            align("axbyc", "abzc", max_edit_distance=2)
        assert excinfo.value.edit_distance_floor == 3

    def test_small_edits_fit_under_ceiling(self):
        ops = align("report within 30 days", "report within 10 days", max_edit_distance=4)
        assert edit_distance(ops) == 2

    def test_time_budget_exceeded_raises(self, monkeypatch):
        class Clock:
            def __init__(self):
                self.now = 0.0

            def time(self):
                self.now += 10.0
                return self.now

        monkeypatch.setattr(aligner, "time", Clock())
        with pytest.raises(AlignmentTimeoutError):
            align("abcdefgh", "hgfedcba", timeout=1.0)


class TestSemanticCleanup:
    """Folding of incidental matches for display."""

    def test_rewritten_phrase_becomes_single_edit(self):
        ops = cleanup_semantic(align("treated like cash", "subject to enhanced due diligence"))
        assert [(op.kind, op.text) for op in ops] == [
            (OpKind.DELETE, "treated like cash"),
            (OpKind.INSERT, "subject to enhanced due diligence"),
        ]

    def test_cleanup_preserves_texts(self):
        for a, b in random_pairs(8, 100, alphabet="abcd ", max_len=20):
            ops = cleanup_semantic(align(a, b))
            assert source_text(ops) == a
            assert target_text(ops) == b

    def test_long_equalities_survive(self):
        ops = cleanup_semantic(align("a long shared sentence x", "b long shared sentence y"))
        assert any(op.kind is OpKind.EQUAL and op.text == " long shared sentence " for op in ops)
