# routes/performance.py
"""Student performance analytics.

Everything here is a read over stored test results and their parent tests.
The pure functions take ``(result, test)`` pairs so they can be exercised
without a database; ``student_performance`` loads the pairs and assembles the
payload served by ``GET /api/users/performance``.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import math

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DIFFICULTIES = ("easy", "medium", "hard")
STRENGTH_TARGET = 3
RECOMMENDATION_LIMIT = 3
RECENT_TESTS_LIMIT = 5

RESOURCE_SUMMARY_FIELDS = {
    "_id": 0,
    "id": 1,
    "title": 1,
    "description": 1,
    "type": 1,
    "url": 1,
    "category": 1,
    "tags": 1,
    "viewCount": 1,
}

Pair = Tuple[dict, dict]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _percent(correct: int, total: int) -> float:
    return correct / total * 100 if total > 0 else 0


def _elapsed_seconds(result: dict) -> float:
    start, end = result.get("startTime"), result.get("endTime")
    if not start or not end:
        return 0.0
    return max((end - start).total_seconds(), 0.0)


def answered_questions(result: dict, test: dict) -> Iterable[Tuple[dict, dict]]:
    """Yield (answer, question) for each stored answer that resolves to a question.

    Answers reference questions by id. Ids that do not resolve are skipped, as
    is any answer after the first for the same question. Records without a
    question reference map to the question at the same position.
    """
    questions = test.get("questions", [])
    by_id = {q["id"]: q for q in questions if q.get("id")}
    seen = set()
    for index, answer in enumerate(result.get("answers", [])):
        if answer.get("question") is not None:
            question = by_id.get(answer["question"])
        elif index < len(questions):
            question = questions[index]
        else:
            question = None
        if question is None or id(question) in seen:
            continue
        seen.add(id(question))
        yield answer, question


def category_performance(pairs: List[Pair]) -> List[dict]:
    stats: Dict[str, dict] = {}
    for result, test in pairs:
        for answer, question in answered_questions(result, test):
            category = question.get("category") or "Uncategorized"
            entry = stats.setdefault(category, {
                "total": 0,
                "correct": 0,
                "bands": {difficulty: {"total": 0, "correct": 0} for difficulty in DIFFICULTIES},
            })
            correct = bool(answer.get("isCorrect"))
            entry["total"] += 1
            entry["correct"] += int(correct)
            band = entry["bands"].get(question.get("difficulty"))
            if band is not None:
                band["total"] += 1
                band["correct"] += int(correct)

    performance = [
        {
            "category": category,
            "avgScore": _percent(entry["correct"], entry["total"]),
            "totalQuestions": entry["total"],
            "correctAnswers": entry["correct"],
            "difficultyBreakdown": {
                difficulty: _percent(band["correct"], band["total"])
                for difficulty, band in entry["bands"].items()
            },
        }
        for category, entry in stats.items()
    ]
    performance.sort(key=lambda item: (-item["avgScore"], item["category"]))
    return performance


def time_analysis(pairs: List[Pair]) -> dict:
    analysis = {
        "averageTimePerQuestion": 0,
        "fastestCategory": "None",
        "slowestCategory": "None",
        "timeByDifficulty": {difficulty: 0 for difficulty in DIFFICULTIES},
        "timeByCategory": {},
    }

    total_time = 0.0
    total_questions = 0
    difficulty_counts = defaultdict(int)
    category_times = defaultdict(list)
    for result, test in pairs:
        questions = test.get("questions", [])
        if not questions:
            continue
        elapsed = _elapsed_seconds(result)
        per_question = elapsed / len(questions)
        total_time += elapsed
        total_questions += len(questions)
        for question in questions:
            difficulty_counts[question.get("difficulty")] += 1
            category_times[question.get("category") or "Uncategorized"].append(per_question)

    if total_questions == 0:
        return analysis

    average = total_time / total_questions
    analysis["averageTimePerQuestion"] = round(average, 2)
    # Each band's share of all questions, weighted by the overall average
    analysis["timeByDifficulty"] = {
        difficulty: round(difficulty_counts[difficulty] / total_questions * average, 2)
        for difficulty in DIFFICULTIES
    }

    by_category = {
        category: round(sum(times) / len(times), 2)
        for category, times in category_times.items()
    }
    analysis["timeByCategory"] = by_category
    if by_category:
        ranked = sorted(by_category.items(), key=lambda item: (item[1], item[0]))
        analysis["fastestCategory"] = ranked[0][0]
        analysis["slowestCategory"] = ranked[-1][0]
    else:
        analysis["fastestCategory"] = "N/A"
        analysis["slowestCategory"] = "N/A"
    return analysis


def classify_subjects(scores: List[Tuple[str, int]], target: int = STRENGTH_TARGET) -> Tuple[List[str], List[str]]:
    """Split (category, accuracy) pairs into strong and weak subject lists.

    Strong subjects are the categories at 100%, topped up with the next best
    categories when there are fewer than ``target``. Weak subjects are the
    lowest ``target`` categories below 100%, lowest last.
    """
    ranked = sorted(scores, key=lambda item: (-item[1], item[0]))
    perfect = [category for category, score in ranked if score == 100]
    imperfect = [category for category, score in ranked if score < 100]

    strong = perfect[:target]
    if len(strong) < target:
        strong += imperfect[:target - len(strong)]
    weak = imperfect[-min(target, len(imperfect)):] if imperfect else []
    return strong, weak


def _answer_distribution(pairs: List[Pair]) -> List[dict]:
    correct = incorrect = unattempted = 0
    for result, test in pairs:
        attempted = 0
        for answer, _ in answered_questions(result, test):
            attempted += 1
            if answer.get("isCorrect"):
                correct += 1
            else:
                incorrect += 1
        unattempted += max(len(test.get("questions", [])) - attempted, 0)
    return [
        {"name": "Correct Answers", "value": correct},
        {"name": "Incorrect Answers", "value": incorrect},
        {"name": "Unattempted", "value": unattempted},
    ]


def format_duration(seconds: float) -> str:
    minutes = int(seconds // 60)
    return f"{minutes // 60}h {minutes % 60}m"


def empty_report(name: str) -> dict:
    return {
        "name": name,
        "testsAttempted": 0,
        "averageScore": 0,
        "timeSpent": "0h 0m",
        "strongSubjects": [],
        "weakSubjects": [],
        "recentTests": [],
        "categoryPerformance": [],
        "categoryBreakdown": [],
        "topicBreakdown": [],
        "answerDistribution": _answer_distribution([]),
        "improvementAreas": [],
        "timeAnalysis": time_analysis([]),
        "recommendedResources": [],
    }


def summarize_performance(name: str, pairs: List[Pair], target: int = STRENGTH_TARGET) -> dict:
    """Build the performance report for one student from newest-first (result, test) pairs."""
    if not pairs:
        return empty_report(name)

    scores = [result.get("score", 0) for result, _ in pairs]
    total_seconds = sum(_elapsed_seconds(result) for result, _ in pairs)

    recent_tests = []
    for result, test in pairs[:RECENT_TESTS_LIMIT]:
        created = result.get("createdAt") or result.get("endTime")
        recent_tests.append({
            "id": result["id"],
            "name": test.get("title", "Unknown Test"),
            "score": result.get("score", 0),
            "date": created.date().isoformat() if created else None,
            "timeSpent": f"{round_half_up(_elapsed_seconds(result) / 60)}m",
        })

    breakdown = category_performance(pairs)
    category_scores = [(item["category"], round_half_up(item["avgScore"])) for item in breakdown]
    strong, weak = classify_subjects(category_scores, target)
    score_by_category = dict(category_scores)

    report = empty_report(name)
    report.update({
        "testsAttempted": len(pairs),
        "averageScore": round_half_up(sum(scores) / len(scores)),
        "timeSpent": format_duration(total_seconds),
        "strongSubjects": strong,
        "weakSubjects": weak,
        "recentTests": recent_tests,
        "categoryPerformance": [{"category": c, "score": s} for c, s in category_scores],
        "categoryBreakdown": breakdown,
        "topicBreakdown": [{"name": c, "value": s} for c, s in category_scores],
        "answerDistribution": _answer_distribution(pairs),
        "improvementAreas": [
            {
                "topic": topic,
                "performance": score_by_category.get(topic, 0),
                "tips": f"Focus on improving your understanding of {topic} concepts.",
            }
            for topic in weak
        ],
        "timeAnalysis": time_analysis(pairs),
    })
    return report


async def load_student_pairs(db, student_id: str) -> List[Pair]:
    """Completed results of a student joined to their tests, newest first."""
    results = await db.test_results.find(
        {"student": student_id, "status": "completed"}, {"_id": 0}
    ).sort([("createdAt", -1), ("id", 1)]).to_list(None)
    if not results:
        return []

    test_ids = list({result["test"] for result in results})
    tests = await db.tests.find({"id": {"$in": test_ids}}, {"_id": 0}).to_list(None)
    tests_by_id = {test["id"]: test for test in tests}
    return [(result, tests_by_id[result["test"]]) for result in results if result["test"] in tests_by_id]


async def recommended_resources(db, categories: List[str], limit: int = RECOMMENDATION_LIMIT) -> List[dict]:
    """Most viewed public resources in the given categories."""
    if not categories:
        return []
    return await db.resources.find(
        {"category": {"$in": categories}, "isPublic": True}, RESOURCE_SUMMARY_FIELDS
    ).sort([("viewCount", -1), ("title", 1)]).limit(limit).to_list(None)


async def student_performance(db, user: dict, target: int = STRENGTH_TARGET,
                              limit: Optional[int] = RECOMMENDATION_LIMIT) -> dict:
    pairs = await load_student_pairs(db, user["id"])
    logger.info(f"Computing performance for user {user['id']} over {len(pairs)} results")
    report = summarize_performance(user.get("name", ""), pairs, target)
    report["recommendedResources"] = await recommended_resources(db, report["weakSubjects"], limit)
    return report
