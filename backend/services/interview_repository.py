# services/interview_repository.py
"""
Firestore access for interviews and feedback records.
"""
from typing import Any, Dict, List, Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from models.feedback import FeedbackRecord
from models.interview import Interview
from utils.logger import get_logger

logger = get_logger("InterviewRepository")

INTERVIEWS = "interviews"
FEEDBACK = "feedback"


class PersistenceError(RuntimeError):
    """A Firestore read or write failed."""


def _with_id(doc) -> Dict[str, Any]:
    return {"id": doc.id, **(doc.to_dict() or {})}


class InterviewRepository:
    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            from firebase_config import get_db
            self._db = get_db()
        return self._db

    # ---------------------------------------------------------------- #
    # Feedback
    # ---------------------------------------------------------------- #

    def add_feedback(self, record: FeedbackRecord) -> str:
        """Unconditional insert; repeated calls create independent documents."""
        try:
            _, ref = self.db.collection(FEEDBACK).add(record.model_dump(mode="json"))
        except Exception as e:
            raise PersistenceError(f"Failed to store feedback for {record.interviewId}: {e}") from e
        logger.info(f"Stored feedback {ref.id} for interview {record.interviewId}")
        return ref.id

    def get_feedback_by_interview_id(self, interview_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            docs = list(
                self.db.collection(FEEDBACK)
                .where(filter=FieldFilter("interviewId", "==", interview_id))
                .where(filter=FieldFilter("userId", "==", user_id))
                .limit(1)
                .stream()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to load feedback for {interview_id}: {e}") from e
        if not docs:
            return None
        return _with_id(docs[0])

    # ---------------------------------------------------------------- #
    # Interviews
    # ---------------------------------------------------------------- #

    def add_interview(self, interview: Interview) -> str:
        try:
            _, ref = self.db.collection(INTERVIEWS).add(interview.model_dump(exclude={"id"}))
        except Exception as e:
            raise PersistenceError(f"Failed to store interview: {e}") from e
        logger.info(f"Stored interview {ref.id} ({interview.role}, {len(interview.questions)} questions)")
        return ref.id

    def get_interview_by_id(self, interview_id: str) -> Optional[Interview]:
        try:
            doc = self.db.collection(INTERVIEWS).document(interview_id).get()
        except Exception as e:
            raise PersistenceError(f"Failed to load interview {interview_id}: {e}") from e
        if not doc.exists:
            return None
        return Interview(**_with_id(doc))

    def get_interviews_by_user_id(self, user_id: Optional[str]) -> List[Interview]:
        if not user_id:
            return []
        try:
            docs = (
                self.db.collection(INTERVIEWS)
                .where(filter=FieldFilter("userId", "==", user_id))
                .order_by("createdAt", direction="DESCENDING")
                .stream()
            )
            return [Interview(**_with_id(d)) for d in docs]
        except Exception as e:
            raise PersistenceError(f"Failed to list interviews for {user_id}: {e}") from e

    def get_latest_interviews(self, user_id: Optional[str], limit: int = 20) -> List[Interview]:
        """Finalized interviews by other users, newest first."""
        try:
            query = (
                self.db.collection(INTERVIEWS)
                .order_by("createdAt", direction="DESCENDING")
                .where(filter=FieldFilter("finalized", "==", True))
            )
            if user_id:
                query = query.where(filter=FieldFilter("userId", "!=", user_id))
            return [Interview(**_with_id(d)) for d in query.limit(limit).stream()]
        except Exception as e:
            raise PersistenceError(f"Failed to list latest interviews: {e}") from e
