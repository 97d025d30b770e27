"""
Minimal edit scripts between two texts.

The search itself is diff-match-patch's Myers bisection (linear space,
common prefix and suffix stripped first). Its half-match speedup is turned
off because it trades minimality for speed, and its timeout is turned into
an error instead of a silently coarse result.

Texts can be compared per code point (default), per word or per line. Word
and line tokens are encoded as single characters before the search, so the
same engine serves every granularity. The returned operations always carry
plain text plus the character offsets of the span in both inputs.
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from diff_match_patch import diff_match_patch

from policy_review.core.exceptions import AlignmentTimeoutError

logger = logging.getLogger(__name__)

# Words, whitespace runs and single punctuation marks cover every character.
WORD_TOKEN_PATTERN = re.compile(r"\w+|\s+|[^\w\s]")

# First code point handed out to encoded tokens.
TOKEN_CODE_START = 0x100


class OpKind(str, Enum):
    EQUAL = "equal"
    DELETE = "delete"
    INSERT = "insert"


class Granularity(str, Enum):
    CHARACTER = "character"
    WORD = "word"
    LINE = "line"


_FROM_DMP = {
    diff_match_patch.DIFF_EQUAL: OpKind.EQUAL,
    diff_match_patch.DIFF_DELETE: OpKind.DELETE,
    diff_match_patch.DIFF_INSERT: OpKind.INSERT,
}
_TO_DMP = {kind: code for code, kind in _FROM_DMP.items()}


@dataclass(frozen=True)
class DiffOp:
    """One span of an edit script, with its offsets in the old and new text."""

    kind: OpKind
    text: str
    a_start: int
    b_start: int

    @property
    def a_end(self) -> int:
        return self.a_start + (0 if self.kind is OpKind.INSERT else len(self.text))

    @property
    def b_end(self) -> int:
        return self.b_start + (0 if self.kind is OpKind.DELETE else len(self.text))


class _BoundedDiff(diff_match_patch):
    """diff-match-patch that raises when the bisection runs out of time."""

    def __init__(self) -> None:
        super().__init__()
        # Zero disables the half-match shortcut, which can return non-minimal scripts.
        self.Diff_Timeout = 0

    def diff_bisect(self, text1, text2, deadline):
        diffs = super().diff_bisect(text1, text2, deadline)
        if deadline is not None and time.time() > deadline:
            raise AlignmentTimeoutError("Alignment exceeded its time budget")
        return diffs


def tokenize(text: str, granularity: Granularity | str = Granularity.CHARACTER) -> Sequence[str]:
    """Split text into comparison units; joining the units yields ``text``."""
    granularity = Granularity(granularity)
    if granularity is Granularity.CHARACTER:
        return text
    if granularity is Granularity.WORD:
        return WORD_TOKEN_PATTERN.findall(text)
    return text.splitlines(keepends=True)


def align(
    a: str,
    b: str,
    granularity: Granularity | str = Granularity.CHARACTER,
    *,
    max_edit_distance: int | None = None,
    timeout: float | None = None,
) -> list[DiffOp]:
    """
    Compute a minimal edit script turning ``a`` into ``b``.

    Args:
        a: Old text
        b: New text
        granularity: Unit of comparison
        max_edit_distance: Largest accepted number of deleted plus inserted characters
        timeout: Abort after this many seconds

    Returns:
        Merged operations; between two equalities a single Delete precedes
        a single Insert.

    Raises:
        AlignmentTimeoutError: If the script is over the ceiling or the time budget ran out
    """
    a = a or ""
    b = b or ""
    granularity = Granularity(granularity)

    floor = abs(len(a) - len(b))
    if max_edit_distance is not None and floor > max_edit_distance:
        raise AlignmentTimeoutError(
            f"Edit distance is at least {floor}, over the ceiling of {max_edit_distance}",
            edit_distance_floor=floor,
        )

    deadline = time.time() + timeout if timeout is not None else None
    dmp = _BoundedDiff()
    if granularity is Granularity.CHARACTER:
        diffs = dmp.diff_main(a, b, False, deadline)
    else:
        tokens_a = tokenize(a, granularity)
        tokens_b = tokenize(b, granularity)
        logger.debug(f"Aligning {len(tokens_a)} vs {len(tokens_b)} {granularity.value} tokens")
        encoded_a, encoded_b, decode = _encode_tokens(tokens_a, tokens_b)
        diffs = [(code, decode(chars)) for code, chars in dmp.diff_main(encoded_a, encoded_b, False, deadline)]

    ops = _merge((_FROM_DMP[code], text) for code, text in diffs)

    if max_edit_distance is not None:
        distance = edit_distance(ops)
        if distance > max_edit_distance:
            raise AlignmentTimeoutError(
                f"Edit distance {distance} is over the ceiling of {max_edit_distance}",
                edit_distance_floor=distance,
            )
    return ops


def edit_distance(ops: Sequence[DiffOp]) -> int:
    """Number of deleted plus inserted characters in an edit script."""
    return sum(len(op.text) for op in ops if op.kind is not OpKind.EQUAL)


def source_text(ops: Sequence[DiffOp]) -> str:
    return "".join(op.text for op in ops if op.kind is not OpKind.INSERT)


def target_text(ops: Sequence[DiffOp]) -> str:
    return "".join(op.text for op in ops if op.kind is not OpKind.DELETE)


def cleanup_semantic(ops: Sequence[DiffOp]) -> list[DiffOp]:
    """
    Fold short coincidental equalities into the surrounding edits.

    A character-level script for a rewritten phrase is littered with
    one-letter matches ("e", " ", "t"); diff-match-patch's semantic cleanup
    turns it into one removal and one addition. The result still
    reconstructs both texts but is no longer minimal; it is meant for display.
    """
    diffs = [(_TO_DMP[op.kind], op.text) for op in ops]
    diff_match_patch().diff_cleanupSemantic(diffs)
    return _merge((_FROM_DMP[code], text) for code, text in diffs)


def _encode_tokens(tokens_a: Sequence[str], tokens_b: Sequence[str]):
    """Map every distinct token to one private character, shared by both sides."""
    token_to_char: dict[str, str] = {}
    char_to_token: dict[str, str] = {}

    def encode(tokens: Sequence[str]) -> str:
        chars = []
        for token in tokens:
            if token not in token_to_char:
                char = chr(TOKEN_CODE_START + len(token_to_char))
                token_to_char[token] = char
                char_to_token[char] = token
            chars.append(token_to_char[token])
        return "".join(chars)

    def decode(chars: str) -> str:
        return "".join(char_to_token[c] for c in chars)

    return encode(tokens_a), encode(tokens_b), decode


def _merge(diffs: Iterable[tuple[OpKind, str]]) -> list[DiffOp]:
    """Coalesce runs of edits into one Delete then one Insert and assign offsets."""
    ops: list[DiffOp] = []
    deleted: list[str] = []
    inserted: list[str] = []
    a_pos = b_pos = 0

    def flush() -> None:
        nonlocal a_pos, b_pos
        removed = "".join(deleted)
        added = "".join(inserted)
        if removed:
            ops.append(DiffOp(OpKind.DELETE, removed, a_pos, b_pos))
            a_pos += len(removed)
        if added:
            ops.append(DiffOp(OpKind.INSERT, added, a_pos, b_pos))
            b_pos += len(added)
        deleted.clear()
        inserted.clear()

    for kind, text in diffs:
        if not text:
            continue
        if kind is OpKind.DELETE:
            deleted.append(text)
        elif kind is OpKind.INSERT:
            inserted.append(text)
        else:
            flush()
            if ops and ops[-1].kind is OpKind.EQUAL:
                previous = ops.pop()
                ops.append(DiffOp(OpKind.EQUAL, previous.text + text, previous.a_start, previous.b_start))
            else:
                ops.append(DiffOp(OpKind.EQUAL, text, a_pos, b_pos))
            a_pos += len(text)
            b_pos += len(text)
    flush()
    return ops
