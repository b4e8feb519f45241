# routes/dashboard.py
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List
import logging

from .performance import round_half_up

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ACTIVE_WINDOW_DAYS = 30


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0


def compute_test_stats(results: List[dict], passing_marks: float) -> dict:
    scores = [result.get("score", 0) for result in results]
    pass_count = sum(1 for score in scores if score >= passing_marks)
    return {
        "attempts": len(scores),
        "averageScore": _mean(scores),
        "maxScore": max(scores) if scores else 0,
        "minScore": min(scores) if scores else 0,
        "passCount": pass_count,
        "passRate": pass_count / len(scores) * 100 if scores else 0,
    }


def headline_category(test: dict) -> str:
    """A test's headline category is the category of its first question."""
    questions = test.get("questions") or []
    if not questions:
        return "Uncategorized"
    return questions[0].get("category") or "Uncategorized"


def student_summaries(students: List[dict], results: List[dict], tests_by_id: Dict[str, dict]) -> List[dict]:
    results_by_student = defaultdict(list)
    for result in results:
        results_by_student[result["student"]].append(result)

    summaries = []
    for student in students:
        taken = sorted(
            results_by_student.get(student["id"], []),
            key=lambda r: r.get("createdAt") or datetime.min,
            reverse=True,
        )
        category_scores = defaultdict(list)
        for result in taken:
            test = tests_by_id.get(result["test"], {})
            category_scores[headline_category(test)].append(result.get("score", 0))

        summaries.append({
            "id": student["id"],
            "name": student.get("name"),
            "email": student.get("email"),
            "testsTaken": len(taken),
            "averageScore": round_half_up(_mean([r.get("score", 0) for r in taken])),
            "lastActive": taken[0].get("createdAt") if taken else student.get("createdAt"),
            "categoryPerformance": [
                {"category": category, "averageScore": round_half_up(_mean(scores))}
                for category, scores in category_scores.items()
            ],
        })
    return summaries


def admin_stats(users: List[dict], tests: List[dict], results: List[dict],
                resources: List[dict], now: datetime) -> dict:
    students = [user for user in users if user.get("role") == "student"]
    since = now - timedelta(days=ACTIVE_WINDOW_DAYS)
    active_students = {
        result["student"] for result in results
        if result.get("createdAt") and result["createdAt"] >= since
    }

    category_stats = defaultdict(int)
    for test in tests:
        for question in test.get("questions", []):
            category_stats[question.get("category") or "Uncategorized"] += 1

    return {
        "totalStudents": len(students),
        "totalTests": len(tests),
        "averageScore": round_half_up(_mean([r.get("score", 0) for r in results])),
        "activeStudents": len(active_students),
        "categoryStats": dict(category_stats),
        "users": _users_by_role(users),
        "tests": _tests_by_difficulty(tests, results),
        "resources": _resources_by_type(resources),
    }


def _users_by_role(users: List[dict]) -> List[dict]:
    roles = defaultdict(lambda: {"count": 0, "active": 0})
    for user in users:
        entry = roles[user.get("role")]
        entry["count"] += 1
        entry["active"] += int(user.get("accountStatus", "active") == "active")
    return [
        {"role": role, "count": e["count"], "active": e["active"], "inactive": e["count"] - e["active"]}
        for role, e in sorted(roles.items(), key=lambda item: str(item[0]))
    ]


def _tests_by_difficulty(tests: List[dict], results: List[dict]) -> List[dict]:
    scores_by_test = defaultdict(list)
    for result in results:
        scores_by_test[result["test"]].append(result.get("score", 0))

    levels = defaultdict(lambda: {"testCount": 0, "totalAttempts": 0, "averages": []})
    for test in tests:
        scores = scores_by_test.get(test["id"])
        if not scores:
            continue
        entry = levels[test.get("difficultyLevel", "intermediate")]
        entry["testCount"] += 1
        entry["totalAttempts"] += len(scores)
        entry["averages"].append(_mean(scores))

    return [
        {
            "difficulty": level,
            "testCount": e["testCount"],
            "totalAttempts": e["totalAttempts"],
            "attemptsPerTest": e["totalAttempts"] / e["testCount"],
            "avgScore": _mean(e["averages"]),
        }
        for level, e in sorted(levels.items())
    ]


def _resources_by_type(resources: List[dict]) -> List[dict]:
    views = defaultdict(list)
    for resource in resources:
        views[resource.get("type")].append(resource.get("viewCount", 0))
    breakdown = [
        {"type": kind, "count": len(v), "avgViews": _mean(v), "totalViews": sum(v)}
        for kind, v in views.items()
    ]
    breakdown.sort(key=lambda item: (-item["count"], str(item["type"])))
    return breakdown


def activity_heatmap(results: List[dict]) -> dict:
    """Attempts per weekday (0 = Sunday) and hour of the attempt's start time."""
    counts = defaultdict(int)
    students = defaultdict(set)
    for result in results:
        start = result.get("startTime")
        if not start:
            continue
        key = ((start.weekday() + 1) % 7, start.hour)
        counts[key] += 1
        students[key].add(result.get("student"))

    heatmap = [[0] * 24 for _ in range(7)]
    raw = []
    for (day, hour), count in sorted(counts.items()):
        heatmap[day][hour] = count
        raw.append({"day": day, "hour": hour, "count": count, "studentCount": len(students[(day, hour)])})
    return {"heatmap": heatmap, "raw": raw}


async def load_student_summaries(db) -> List[dict]:
    students = await db.users.find({"role": "student"}, {"_id": 0, "password": 0}).sort("createdAt", -1).to_list(None)
    student_ids = [student["id"] for student in students]
    results = await db.test_results.find({"student": {"$in": student_ids}}, {"_id": 0}).to_list(None)
    test_ids = list({result["test"] for result in results})
    tests = await db.tests.find({"id": {"$in": test_ids}}, {"_id": 0}).to_list(None)
    return student_summaries(students, results, {test["id"]: test for test in tests})


async def load_admin_stats(db) -> dict:
    users = await db.users.find({}, {"_id": 0, "password": 0}).to_list(None)
    tests = await db.tests.find({}, {"_id": 0}).to_list(None)
    results = await db.test_results.find({}, {"_id": 0, "answers": 0}).to_list(None)
    resources = await db.resources.find({}, {"_id": 0, "type": 1, "viewCount": 1}).to_list(None)
    logger.info(f"Computing admin stats over {len(users)} users, {len(tests)} tests, {len(results)} results")
    return admin_stats(users, tests, results, resources, datetime.utcnow())
