# routes/resources.py
from fastapi import APIRouter, Depends, Response
from pymongo import ReturnDocument
from datetime import datetime
from typing import List, Optional
import logging
import uuid

from database import get_db
from errors import NotFoundError
from models.resource import ResourceCreate, ResourceUpdate
from .auth import get_current_user, ensure_owner

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resources", tags=["resources"])

SIMILAR_LIMIT = 5


def _serialize(resource: dict, creators: Optional[dict] = None) -> dict:
    shaped = {key: value for key, value in resource.items() if key != "_id"}
    if creators is not None:
        creator_id = resource.get("createdBy")
        shaped["createdBy"] = creators.get(creator_id, {"id": creator_id, "name": None})
    return shaped


async def _creators(db, docs: List[dict]) -> dict:
    ids = list({doc.get("createdBy") for doc in docs if doc.get("createdBy")})
    users = await db.users.find({"id": {"$in": ids}}, {"_id": 0, "id": 1, "name": 1}).to_list(None)
    return {user["id"]: user for user in users}


def _can_view(resource: dict, current_user: dict) -> bool:
    return (
        resource.get("isPublic", True)
        or current_user["role"] == "admin"
        or resource.get("createdBy") == current_user["id"]
    )


async def _get_resource_or_404(db, resource_id: str, current_user: dict) -> dict:
    resource = await db.resources.find_one({"id": resource_id}, {"_id": 0})
    if not resource or not _can_view(resource, current_user):
        raise NotFoundError("No resource found with that ID")
    return resource


def similarity_score(source: dict, candidate: dict) -> int:
    """Category match 3, difficulty match 2, plus 1 per shared tag."""
    score = 0
    if candidate.get("category") == source.get("category"):
        score += 3
    if candidate.get("difficulty") == source.get("difficulty"):
        score += 2
    score += len(set(candidate.get("tags", [])) & set(source.get("tags", [])))
    return score


def rank_similar(source: dict, candidates: List[dict], limit: int = SIMILAR_LIMIT) -> List[dict]:
    ranked = []
    for candidate in candidates:
        if candidate.get("id") == source.get("id") or not candidate.get("isPublic", True):
            continue
        shares_tag = set(candidate.get("tags", [])) & set(source.get("tags", []))
        if candidate.get("category") != source.get("category") and not shares_tag:
            continue
        ranked.append({
            "id": candidate["id"],
            "title": candidate.get("title"),
            "description": candidate.get("description"),
            "type": candidate.get("type"),
            "category": candidate.get("category"),
            "tags": candidate.get("tags", []),
            "viewCount": candidate.get("viewCount", 0),
            "similarityScore": similarity_score(source, candidate),
        })
    ranked.sort(key=lambda item: (-item["similarityScore"], -item["viewCount"], item["title"] or ""))
    return ranked[:limit]


@router.get("")
async def get_resources(
    category: Optional[str] = None,
    type: Optional[str] = None,
    tag: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    query = {"isPublic": True}
    if category:
        query["category"] = category
    if type:
        query["type"] = type
    if tag:
        query["tags"] = tag

    resources = await db.resources.find(query, {"_id": 0}).sort("createdAt", -1).to_list(None)
    creators = await _creators(db, resources)
    return {
        "status": "success",
        "results": len(resources),
        "data": {"resources": [_serialize(r, creators) for r in resources]},
    }


@router.post("", status_code=201)
async def create_resource(resource: ResourceCreate, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    logger.info(f"Creating resource '{resource.title}' by user {current_user['id']}")
    now = datetime.utcnow()
    resource_dict = resource.model_dump()
    resource_dict.update({
        "id": str(uuid.uuid4()),
        "title": resource.title.strip(),
        "category": resource.category.strip(),
        "url": str(resource.url),
        "viewCount": 0,
        "likes": 0,
        "createdBy": current_user["id"],
        "createdAt": now,
        "updatedAt": now,
    })
    await db.resources.insert_one(resource_dict)
    return {"status": "success", "data": {"resource": _serialize(resource_dict)}}


@router.get("/{resource_id}")
async def get_resource(resource_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    await _get_resource_or_404(db, resource_id, current_user)

    # Viewing a resource counts as a view
    resource = await db.resources.find_one_and_update(
        {"id": resource_id},
        {"$inc": {"viewCount": 1}, "$set": {"lastAccessed": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not resource:
        raise NotFoundError("No resource found with that ID")
    creators = await _creators(db, [resource])
    return {"status": "success", "data": {"resource": _serialize(resource, creators)}}


@router.get("/{resource_id}/similar")
async def get_similar_resources(resource_id: str, limit: int = SIMILAR_LIMIT,
                                current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    source = await _get_resource_or_404(db, resource_id, current_user)
    candidates = await db.resources.find(
        {
            "id": {"$ne": resource_id},
            "isPublic": True,
            "$or": [{"category": source.get("category")}, {"tags": {"$in": source.get("tags", [])}}],
        },
        {"_id": 0},
    ).to_list(None)
    similar = rank_similar(source, candidates, max(1, min(limit, 50)))
    return {"status": "success", "results": len(similar), "data": {"resources": similar}}


@router.patch("/{resource_id}")
async def update_resource(resource_id: str, update: ResourceUpdate,
                          current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    existing = await _get_resource_or_404(db, resource_id, current_user)
    ensure_owner(existing, current_user, "update this resource")

    changes = {key: value for key, value in update.model_dump(exclude_unset=True).items() if value is not None}
    if "url" in changes:
        changes["url"] = str(update.url)
    for field in ("title", "category"):
        if field in changes:
            changes[field] = changes[field].strip()
    changes["updatedAt"] = datetime.utcnow()

    logger.info(f"Updating resource {resource_id} by user {current_user['id']}: fields={sorted(changes)}")
    resource = await db.resources.find_one_and_update(
        {"id": resource_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not resource:
        raise NotFoundError("No resource found with that ID")
    return {"status": "success", "data": {"resource": _serialize(resource)}}


@router.delete("/{resource_id}", status_code=204)
async def delete_resource(resource_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    resource = await _get_resource_or_404(db, resource_id, current_user)
    ensure_owner(resource, current_user, "delete this resource")

    await db.resources.delete_one({"id": resource_id})
    logger.info(f"Deleted resource {resource_id} by user {current_user['id']}")
    return Response(status_code=204)
