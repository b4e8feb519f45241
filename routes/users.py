# routes/users.py
from fastapi import APIRouter, Depends
import logging

from database import get_db
from .auth import get_current_user, restrict_to
from .dashboard import activity_heatmap, load_admin_stats, load_student_summaries
from .performance import student_performance

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/students")
async def get_students(current_user: dict = Depends(restrict_to("admin")), db=Depends(get_db)):
    logger.info(f"Fetching students for admin {current_user['id']}")
    students = await load_student_summaries(db)
    return {"status": "success", "results": len(students), "data": {"students": students}}


@router.get("/admin-stats")
async def get_admin_stats(current_user: dict = Depends(restrict_to("admin")), db=Depends(get_db)):
    stats = await load_admin_stats(db)
    return {"status": "success", "data": stats}


@router.get("/activity-heatmap")
async def get_activity_heatmap(current_user: dict = Depends(restrict_to("admin")), db=Depends(get_db)):
    results = await db.test_results.find({}, {"_id": 0, "student": 1, "startTime": 1}).to_list(None)
    return {"status": "success", "data": activity_heatmap(results)}


@router.get("/performance")
async def get_performance(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    report = await student_performance(db, current_user)
    return {"status": "success", "data": report}
