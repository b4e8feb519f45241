# routes/scoring.py
import uuid
from typing import List, Union

from errors import AppError


def normalize_correct_answer(options: List[str], correct_answer: Union[int, str]) -> str:
    """Resolve a submitted correct answer to the literal text of one option.

    Admin forms send the option index (as a number or a digit string) while
    imports and API clients usually send the option text. Both are accepted,
    but a digit string that names one option literally and a different one by
    index is rejected instead of guessed.
    """
    if isinstance(correct_answer, bool):
        raise AppError("Correct answer must be an option or an option index")

    if isinstance(correct_answer, int):
        if 0 <= correct_answer < len(options):
            return options[correct_answer]
        raise AppError(f"Correct answer index {correct_answer} is out of range")

    index = int(correct_answer) if correct_answer.isdecimal() else None
    index_valid = index is not None and index < len(options)

    if correct_answer in options:
        if index_valid and options[index] != correct_answer:
            raise AppError(
                f"Correct answer '{correct_answer}' is ambiguous: it matches an option "
                f"and also indexes option '{options[index]}'"
            )
        return correct_answer

    if index_valid:
        return options[index]
    raise AppError(f"Correct answer '{correct_answer}' must match one of the options")


def build_question(question) -> dict:
    """Validate a QuestionIn and return the document stored inside a test."""
    options = [option.strip() for option in question.options]
    if any(not option for option in options):
        raise AppError("Options cannot be empty")
    if len(set(options)) != len(options):
        raise AppError("Options must be distinct")
    if not question.question.strip():
        raise AppError("Question text is required")
    if not question.category.strip():
        raise AppError("Category is required")

    correct = question.correctAnswer
    if isinstance(correct, str):
        correct = correct.strip()

    return {
        "id": question.id or str(uuid.uuid4()),
        "question": question.question.strip(),
        "options": options,
        "correctAnswer": normalize_correct_answer(options, correct),
        "difficulty": question.difficulty,
        "category": question.category.strip(),
        "explanation": question.explanation,
    }


def build_questions(questions) -> List[dict]:
    built = [build_question(question) for question in questions]
    ids = [question["id"] for question in built]
    if len(set(ids)) != len(ids):
        raise AppError("Question ids must be unique within a test")
    return built


def check_marks(total_marks: int, passing_marks: int) -> None:
    if passing_marks > total_marks:
        raise AppError("Passing marks cannot exceed total marks")


def score_submission(questions: List[dict], answers: List[dict], passing_marks: float) -> dict:
    """Score submitted answers against a test's questions.

    Each answer is ``{"questionId", "selectedOption"}``. An answer is correct
    when the selected option equals the stored correct answer exactly. The
    percentage is taken over every question in the test, so unanswered
    questions count as wrong. Only the first answer to a question is scored,
    and only that answer is kept in ``records``, the list that gets stored.
    """
    if not questions:
        raise AppError("Test has no questions and cannot be scored")

    by_id = {question["id"]: question for question in questions}
    seen = set()
    marks_obtained = 0
    review = []
    records = []

    for answer in answers:
        question_id = answer["questionId"]
        selected = answer["selectedOption"]
        question = by_id.get(question_id)
        first_answer = question is not None and question_id not in seen
        is_correct = first_answer and question["correctAnswer"] == selected
        seen.add(question_id)
        if is_correct:
            marks_obtained += 1

        review.append({
            "questionId": question_id,
            "question": question["question"] if question else None,
            "options": question["options"] if question else None,
            "correctAnswer": question["correctAnswer"] if question else None,
            "explanation": question.get("explanation", "") if question else None,
            "selectedOption": selected,
            "isCorrect": is_correct,
        })
        if first_answer:
            records.append({
                "question": question_id,
                "selectedAnswer": selected,
                "isCorrect": is_correct,
            })

    percentage = marks_obtained / len(questions) * 100
    return {
        "totalQuestions": len(questions),
        "marksObtained": marks_obtained,
        "percentage": percentage,
        "passed": percentage >= passing_marks,
        "answers": review,
        "records": records,
    }
