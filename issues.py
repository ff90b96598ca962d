"""
Issue Service
=============

Creating reports, listing them (filtered and paginated), listing a user's
own reports and toggling upvotes.

The toggle never reads then writes: it runs as conditional atomic updates
against the issue document ("add if absent", else "remove if present"), so
`upvotes == len(upvotedBy)` holds whatever the interleaving of callers.
"""

import logging
import math
from typing import List, Optional

from fastapi import UploadFile
from pymongo.errors import PyMongoError

from database import IssueStore, to_object_id
from errors import InternalError, NotFoundError, ValidationError
from schemas import Issue, IssueCreate, IssueFilter, IssueOut, IssuePage, UpvoteResult
from uploads import ImageStorage

logger = logging.getLogger(__name__)

MAX_TOGGLE_ATTEMPTS = 5


def issue_view(doc: dict, viewer_id: Optional[str] = None) -> IssueOut:
    upvoted_by = doc.get("upvotedBy", [])
    viewer = to_object_id(viewer_id)
    return IssueOut(
        id=str(doc["_id"]),
        category=doc["category"],
        description=doc["description"],
        address=doc.get("address", ""),
        latitude=doc["latitude"],
        longitude=doc["longitude"],
        images=doc.get("images", []),
        reportedBy=str(doc["reportedBy"]),
        status=doc.get("status", "Pending"),
        priority=doc.get("priority", "Medium"),
        upvotes=doc.get("upvotes", 0),
        hasUpvoted=viewer is not None and viewer in upvoted_by,
        assignedTo=doc.get("assignedTo", ""),
        createdAt=doc["createdAt"],
        updatedAt=doc["updatedAt"],
    )


class IssueService:
    def __init__(self, issues: IssueStore, images: ImageStorage, default_page_size: int, max_page_size: int):
        self.issues = issues
        self.images = images
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def create_issue(self, user_id: str, data: IssueCreate, files: Optional[List[UploadFile]] = None) -> IssueOut:
        # Fields were validated by IssueCreate before any file is written.
        saved = self.images.save_all(files)

        try:
            doc = Issue(**data.model_dump(), images=saved).model_dump()
            doc["reportedBy"] = to_object_id(user_id)
            doc["upvotedBy"] = []
            self.issues.insert(doc)
        except PyMongoError as e:
            logger.error(f"Saving issue failed, removing {len(saved)} image(s): {e}")
            self.images.discard(saved)
            raise InternalError("Server error while saving the issue")
        except Exception:
            logger.exception(f"Building issue failed, removing {len(saved)} image(s)")
            self.images.discard(saved)
            raise

        logger.info(f"User {user_id} reported issue {doc['_id']} ({data.category})")
        return issue_view(doc, user_id)

    def list_issues(self, filters: IssueFilter, page: int = 1, limit: Optional[int] = None,
                    viewer_id: Optional[str] = None) -> IssuePage:
        if limit is None:
            limit = self.default_page_size
        if page < 1:
            raise ValidationError("page must be at least 1")
        if limit < 1 or limit > self.max_page_size:
            raise ValidationError(f"limit must be between 1 and {self.max_page_size}")

        docs, total = self.issues.find_page(filters.to_query(), (page - 1) * limit, limit)
        return IssuePage(
            issues=[issue_view(d, viewer_id) for d in docs],
            totalPages=math.ceil(total / limit),
            currentPage=page,
            total=total,
        )

    def list_my_issues(self, user_id: str) -> List[IssueOut]:
        return [issue_view(d, user_id) for d in self.issues.find_by_reporter(user_id)]

    def toggle_upvote(self, issue_id: str, user_id: str) -> UpvoteResult:
        oid = to_object_id(issue_id)
        uid = to_object_id(user_id)
        if oid is None:
            raise NotFoundError("Issue not found")

        for _ in range(MAX_TOGGLE_ATTEMPTS):
            doc = self.issues.add_upvote(oid, uid)
            if doc is not None:
                return UpvoteResult(upvotes=doc["upvotes"], hasUpvoted=True)
            doc = self.issues.remove_upvote(oid, uid)
            if doc is not None:
                return UpvoteResult(upvotes=doc["upvotes"], hasUpvoted=False)
            if not self.issues.exists(oid):
                raise NotFoundError("Issue not found")
            # Another toggle by the same user landed in between; go again.

        raise InternalError("Could not apply upvote, please retry")
