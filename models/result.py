# models/result.py
from datetime import datetime, timedelta
from typing import List, Literal
import uuid

ResultStatus = Literal["completed", "incomplete", "abandoned"]


def build_result_document(
    student_id: str,
    test_id: str,
    score: float,
    answers: List[dict],
    start_time: datetime,
    end_time: datetime,
    retention_days: int,
    status: ResultStatus = "completed",
) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "student": student_id,
        "test": test_id,
        "score": score,
        "answers": answers,
        "startTime": start_time,
        "endTime": end_time,
        "status": status,
        "expiresAt": end_time + timedelta(days=retention_days),
        "createdAt": end_time,
        "updatedAt": end_time,
    }
