# src/SKMS/services/scoring.py
"""
Assessment scoring.

Everything here is a pure function of its arguments: no session, no clock,
no settings lookups. The workflow layer decides which ``ScoringMode`` to pass.

Two rules exist because the two historical scorers disagreed:

* ``single_option`` awards a question's points when the one selected option
  is marked correct. Selecting more than one option is rejected.
* ``exact_set`` awards the points only when the selected options are exactly
  the question's correct options.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Sequence

from SKMS.exceptions import ValidationError


class ScoringMode(str, Enum):
    SINGLE_OPTION = "single_option"
    EXACT_SET = "exact_set"


class Answer(NamedTuple):
    question_id: str
    option_ids: tuple


def normalize_answers(raw: Iterable[Any]) -> List[Answer]:
    """
    Accept request answers (objects with ``question`` and ``selections``, or
    dicts with ``question`` plus ``selectedOption``/``selectedOptions``) and
    return one ``Answer`` per question.
    """
    out: List[Answer] = []
    seen: set[str] = set()
    for item in raw:
        if isinstance(item, Answer):
            qid, selections = item.question_id, list(item.option_ids)
        elif isinstance(item, dict):
            qid = item.get("question")
            many = item.get("selectedOptions", item.get("selected_options"))
            one = item.get("selectedOption", item.get("selected_option"))
            selections = list(many) if many is not None else ([one] if one else [])
        else:
            qid = item.question
            selections = list(item.selections)
        if not qid:
            raise ValidationError("Each answer must reference a question")
        if qid in seen:
            raise ValidationError(
                "Question answered more than once", context={"question_id": qid}
            )
        seen.add(qid)
        out.append(Answer(str(qid), tuple(dict.fromkeys(str(o) for o in selections))))
    return out


def _question_awarded(question, selected: tuple, mode: ScoringMode) -> bool:
    correct = question.correct_option_ids
    if mode is ScoringMode.EXACT_SET:
        return frozenset(selected) == correct
    if len(selected) > 1:
        raise ValidationError(
            "Only one option may be selected per question",
            context={"question_id": question.id},
        )
    return len(selected) == 1 and selected[0] in correct


def calculate_score(
    answers: Iterable[Any],
    questions: Sequence[Any],
    mode: ScoringMode | str = ScoringMode.SINGLE_OPTION,
) -> Dict[str, float]:
    """
    Score ``answers`` against ``questions``.

    Returns ``{"score", "total_possible", "percentage"}``; percentage is 0 when
    the questions carry no points. An answer to a question outside ``questions``
    is skipped and an option outside its question is never correct; neither
    rejects the submission. Unanswered questions score 0.
    """
    mode = ScoringMode(mode)
    by_id = {q.id: q for q in questions}
    total_possible = sum(q.points for q in questions)

    score = 0
    for answer in normalize_answers(answers):
        question = by_id.get(answer.question_id)
        if question is None:
            continue
        if _question_awarded(question, answer.option_ids, mode):
            score += question.points

    percentage = round(score / total_possible * 100, 2) if total_possible else 0
    return {"score": score, "total_possible": total_possible, "percentage": percentage}


def get_statistics(scores: Iterable[int], passing_score: int) -> Dict[str, float]:
    scores = list(scores)
    if not scores:
        return {
            "average_score": 0,
            "pass_rate": 0,
            "highest_score": 0,
            "lowest_score": 0,
            "total_submissions": 0,
        }
    passed = sum(1 for s in scores if s >= passing_score)
    return {
        "average_score": sum(scores) / len(scores),
        "pass_rate": passed / len(scores) * 100,
        "highest_score": max(scores),
        "lowest_score": min(scores),
        "total_submissions": len(scores),
    }
