"""Cross-field checks the structured-output schemas cannot express.

The schemas only constrain shapes; these functions verify that ids and
positions inside one question refer to each other consistently. Each raises
``ValueError`` describing the first problem found.
"""
from __future__ import annotations

import re
from typing import List

from .schemas import EventOrderDraft, FillBlankDraft, MatchingDraft

BLANK_MARKER = re.compile(r"_{2,}")


def count_blank_markers(sentence: str) -> int:
    return len(BLANK_MARKER.findall(sentence))


def check_fill_blank(draft: FillBlankDraft) -> None:
    markers = count_blank_markers(draft.sentence)
    if markers != len(draft.blanks):
        raise ValueError(f"sentence has {markers} blank markers but {len(draft.blanks)} blanks were given")
    positions = sorted(b.position for b in draft.blanks)
    if positions != list(range(len(draft.blanks))):
        raise ValueError(f"blank positions must be 0..{len(draft.blanks) - 1} exactly once, got {positions}")
    for blank in draft.blanks:
        if blank.options and blank.correct_answer not in blank.options:
            raise ValueError(f"options for blank {blank.position} do not include its answer")


def _duplicates(ids: List[str]) -> List[str]:
    seen = set()
    dupes = []
    for i in ids:
        if i in seen and i not in dupes:
            dupes.append(i)
        seen.add(i)
    return dupes


def check_event_order(draft: EventOrderDraft) -> None:
    ids = [e.id for e in draft.events]
    dupes = _duplicates(ids)
    if dupes:
        raise ValueError(f"duplicate event ids: {dupes}")
    if sorted(draft.correct_order) != sorted(ids):
        raise ValueError("correctOrder is not a permutation of the event ids")


def check_matching(draft: MatchingDraft) -> None:
    left_ids = [i.id for i in draft.left_items]
    right_ids = [i.id for i in draft.right_items]
    for side, ids in (("left", left_ids), ("right", right_ids)):
        dupes = _duplicates(ids)
        if dupes:
            raise ValueError(f"duplicate {side} item ids: {dupes}")
    for pair in draft.correct_pairs:
        if pair.left_id not in left_ids:
            raise ValueError(f"pair references unknown left id {pair.left_id!r}")
        if pair.right_id not in right_ids:
            raise ValueError(f"pair references unknown right id {pair.right_id!r}")
    for side, used in (
        ("left", [p.left_id for p in draft.correct_pairs]),
        ("right", [p.right_id for p in draft.correct_pairs]),
    ):
        dupes = _duplicates(used)
        if dupes:
            raise ValueError(f"{side} ids paired more than once: {dupes}")


def check_draft(question_type: str, draft) -> None:
    if question_type == "fill-blank":
        check_fill_blank(draft)
    elif question_type == "event-order":
        check_event_order(draft)
    elif question_type == "matching":
        check_matching(draft)
