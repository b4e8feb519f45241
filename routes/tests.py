# routes/tests.py
from fastapi import APIRouter, Depends, Response
from pymongo import ReturnDocument
from pymongo.errors import BulkWriteError, PyMongoError
from datetime import datetime, timezone
from typing import List, Optional
import logging
import uuid

from config import RESULT_RETENTION_DAYS
from database import get_db
from errors import AppError, NotFoundError
from models.test import TestCreate, TestUpdate, TestSubmission, public_question
from models.result import build_result_document
from .auth import get_current_user, restrict_to, ensure_owner
from .dashboard import compute_test_stats
from .scoring import build_questions, check_marks, score_submission

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tests", tags=["tests"])


async def _creators(db, docs: List[dict]) -> dict:
    ids = list({doc.get("createdBy") for doc in docs if doc.get("createdBy")})
    users = await db.users.find({"id": {"$in": ids}}, {"_id": 0, "id": 1, "name": 1}).to_list(None)
    return {user["id"]: user for user in users}


def _public_test(test: dict, creators: dict) -> dict:
    shaped = {key: value for key, value in test.items() if key != "_id"}
    shaped["questions"] = [public_question(q) for q in test.get("questions", [])]
    creator_id = test.get("createdBy")
    shaped["createdBy"] = creators.get(creator_id, {"id": creator_id, "name": None})
    return shaped


async def _get_test_or_404(db, test_id: str) -> dict:
    test = await db.tests.find_one({"id": test_id}, {"_id": 0})
    if not test:
        raise NotFoundError("No test found with that ID")
    return test


def _as_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


async def delete_test_with_results(db, test_id: str) -> int:
    """Delete a test and every result that references it.

    Results are snapshotted first; if deleting the test fails the snapshot is
    written back so no result is left pointing at a live test it lost.
    """
    results = await db.test_results.find({"test": test_id}).to_list(None)
    await db.test_results.delete_many({"test": test_id})
    try:
        await db.tests.delete_one({"id": test_id})
    except PyMongoError:
        logger.exception(f"Deleting test {test_id} failed, restoring {len(results)} results")
        if results:
            try:
                await db.test_results.insert_many(results, ordered=False)
            except BulkWriteError as e:
                logger.error(f"Partial restore of results for test {test_id}: {e.details.get('writeErrors')}")
        raise
    return len(results)


@router.get("")
async def get_tests(
    tag: Optional[str] = None,
    difficultyLevel: Optional[str] = None,
    active: Optional[bool] = None,
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    query = {}
    if tag:
        query["tags"] = tag
    if difficultyLevel:
        query["difficultyLevel"] = difficultyLevel
    if active is not None:
        query["isActive"] = active

    tests = await db.tests.find(query, {"_id": 0}).sort("createdAt", -1).to_list(None)
    creators = await _creators(db, tests)
    return {
        "status": "success",
        "results": len(tests),
        "data": {"tests": [_public_test(test, creators) for test in tests]},
    }


@router.post("", status_code=201)
async def create_test(test: TestCreate, current_user: dict = Depends(restrict_to("admin")), db=Depends(get_db)):
    logger.info(f"Creating test '{test.title}' by user {current_user['id']}")
    check_marks(test.totalMarks, test.passingMarks)

    now = datetime.utcnow()
    test_dict = test.model_dump(exclude={"questions"})
    test_dict.update({
        "id": str(uuid.uuid4()),
        "title": test.title.strip(),
        "questions": build_questions(test.questions),
        "tags": [tag.strip() for tag in test.tags if tag.strip()],
        "createdBy": current_user["id"],
        "createdAt": now,
        "updatedAt": now,
    })
    await db.tests.insert_one(test_dict)
    test_dict.pop("_id", None)

    creators = {current_user["id"]: {"id": current_user["id"], "name": current_user.get("name")}}
    return {"status": "success", "data": {"test": _public_test(test_dict, creators)}}


@router.get("/results")
async def get_test_results(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    results = await db.test_results.find(
        {"student": current_user["id"]}, {"_id": 0}
    ).sort([("createdAt", -1), ("id", 1)]).to_list(None)

    test_ids = list({result["test"] for result in results})
    tests = await db.tests.find({"id": {"$in": test_ids}}, {"_id": 0, "id": 1, "title": 1}).to_list(None)
    titles = {test["id"]: test for test in tests}
    for result in results:
        result["test"] = titles.get(result["test"], {"id": result["test"], "title": None})

    return {"status": "success", "results": len(results), "data": {"results": results}}


@router.get("/{test_id}")
async def get_test(test_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    test = await _get_test_or_404(db, test_id)
    creators = await _creators(db, [test])
    return {"status": "success", "data": {"test": _public_test(test, creators)}}


@router.put("/{test_id}")
async def update_test(test_id: str, update: TestUpdate,
                      current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    existing = await _get_test_or_404(db, test_id)
    ensure_owner(existing, current_user, "update this test")

    changes = {key: value for key, value in update.model_dump(exclude_unset=True).items() if value is not None}
    check_marks(
        changes.get("totalMarks", existing["totalMarks"]),
        changes.get("passingMarks", existing["passingMarks"]),
    )
    if update.questions is not None:
        changes["questions"] = build_questions(update.questions)
    if "title" in changes:
        changes["title"] = changes["title"].strip()
    if "tags" in changes:
        changes["tags"] = [tag.strip() for tag in changes["tags"] if tag.strip()]
    changes["updatedAt"] = datetime.utcnow()

    logger.info(f"Updating test {test_id} by user {current_user['id']}: fields={sorted(changes)}")
    updated = await db.tests.find_one_and_update(
        {"id": test_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise NotFoundError("No test found with that ID")
    creators = await _creators(db, [updated])
    return {"status": "success", "data": {"test": _public_test(updated, creators)}}


@router.delete("/{test_id}", status_code=204)
async def delete_test(test_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    test = await _get_test_or_404(db, test_id)
    ensure_owner(test, current_user, "delete this test")

    removed = await delete_test_with_results(db, test_id)
    logger.info(f"Deleted test {test_id} and {removed} results by user {current_user['id']}")
    return Response(status_code=204)


@router.get("/{test_id}/stats")
async def get_test_stats(test_id: str, current_user: dict = Depends(restrict_to("admin")), db=Depends(get_db)):
    test = await _get_test_or_404(db, test_id)
    try:
        results = await db.test_results.find({"test": test_id}, {"_id": 0, "score": 1}).to_list(None)
    except PyMongoError as e:
        logger.warning(f"Falling back to empty stats for test {test_id}: {str(e)}")
        results = []
    return {"status": "success", "data": compute_test_stats(results, test["passingMarks"])}


@router.post("/{test_id}/submit", status_code=201)
async def submit_test(test_id: str, submission: TestSubmission,
                      current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    test = await _get_test_or_404(db, test_id)
    if not test.get("isActive", True):
        raise AppError("This test is not currently available")

    answers = [answer.model_dump() for answer in submission.answers]
    scored = score_submission(test.get("questions", []), answers, test["passingMarks"])

    end_time = datetime.utcnow()
    start_time = min(_as_utc_naive(submission.startTime), end_time)
    result = build_result_document(
        student_id=current_user["id"],
        test_id=test_id,
        score=scored["percentage"],
        answers=scored["records"],
        start_time=start_time,
        end_time=end_time,
        retention_days=RESULT_RETENTION_DAYS,
    )
    await db.test_results.insert_one(result)
    result.pop("_id", None)
    logger.info(f"User {current_user['id']} scored {scored['percentage']:.1f}% on test {test_id}")

    return {
        "status": "success",
        "data": {
            "testResult": result,
            "testDetails": {
                "title": test["title"],
                "description": test.get("description"),
                "totalQuestions": scored["totalQuestions"],
                "marksObtained": scored["marksObtained"],
                "percentage": scored["percentage"],
                "passed": scored["passed"],
                "answers": scored["answers"],
            },
        },
    }
