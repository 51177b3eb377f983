import hashlib
import hmac
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pymongo import DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from noviq.config import Settings
from noviq.errors import DuplicateUserError, StorageUnavailableError
from noviq.schemas import Answer

logger = logging.getLogger(__name__)

SERVER_SELECTION_TIMEOUT_MS = 5000
PBKDF2_ITERATIONS = 260_000


def connect(settings: Settings) -> MongoClient:
    """Open the process-wide client. Connections are made lazily by pymongo."""
    return MongoClient(
        settings.require_database_url(),
        serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
        tz_aware=True,
    )


def get_database(client: MongoClient, settings: Settings) -> Database:
    if settings.database_name:
        return client[settings.database_name]
    return client.get_default_database(default="noviq")


def serialize(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Make a stored document JSON-safe (ObjectId and datetime become strings)."""
    return {key: _json_safe(value) for key, value in document.items()}


def _json_safe(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return serialize(value)
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


class AnalysisStore:
    """Append-only log of analyses keyed by ``userId``.

    Records are never updated or deleted; a newer ``createdAt`` supersedes
    an older one for the same user.
    """

    COLLECTION = "analyses"

    def __init__(self, db: Database):
        self._collection = db[self.COLLECTION]

    def save(
        self,
        user_id: Optional[str],
        business_idea: str,
        answers: Mapping[str, Answer],
        analysis: Dict[str, Any],
    ) -> str:
        document = {
            "userId": user_id,
            "businessIdea": business_idea,
            "answers": {qid: answer.model_dump() for qid, answer in answers.items()},
            "analysis": analysis,
            "createdAt": datetime.now(timezone.utc),
        }
        try:
            result = self._collection.insert_one(document)
        except PyMongoError as e:
            logger.error(f"Saving analysis failed: {e}")
            raise StorageUnavailableError(f"Database unavailable: {e}") from e

        logger.info(f"Stored analysis {result.inserted_id} for user {user_id}")
        return str(result.inserted_id)

    def get_latest(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._collection.find_one(
                {"userId": user_id},
                sort=[("createdAt", DESCENDING), ("_id", DESCENDING)],
            )
        except PyMongoError as e:
            logger.error(f"Fetching latest analysis failed: {e}")
            raise StorageUnavailableError(f"Database unavailable: {e}") from e

    def get_all(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        if not user_id:
            return []
        try:
            cursor = self._collection.find({"userId": user_id}).sort(
                [("createdAt", DESCENDING), ("_id", DESCENDING)]
            )
            return list(cursor)
        except PyMongoError as e:
            logger.error(f"Fetching analyses failed: {e}")
            raise StorageUnavailableError(f"Database unavailable: {e}") from e

    def count(self) -> int:
        try:
            return self._collection.count_documents({})
        except PyMongoError as e:
            raise StorageUnavailableError(f"Database unavailable: {e}") from e


class UserStore:
    """Registered accounts plus the raw prompts submitted at sign-up."""

    USERS = "users"
    PROMPTS = "prompts"

    def __init__(self, db: Database):
        self._users = db[self.USERS]
        self._prompts = db[self.PROMPTS]

    @staticmethod
    def hash_password(password: str, salt: Optional[bytes] = None) -> str:
        salt = salt or os.urandom(16)
        digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
        return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"

    @staticmethod
    def verify_password(password: str, hashed: str) -> bool:
        _, iterations, salt, digest = hashed.split("$")
        candidate = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), int(iterations))
        return hmac.compare_digest(candidate.hex(), digest)

    def register(self, name: str, email: str, password: str, prompt: Optional[str] = None) -> str:
        now = datetime.now(timezone.utc)
        try:
            if self._users.find_one({"email": email}):
                raise DuplicateUserError("User already exists")

            result = self._users.insert_one({
                "name": name,
                "email": email,
                "password": self.hash_password(password),
                "createdAt": now,
            })

            if prompt:
                self._prompts.insert_one({
                    "userId": result.inserted_id,
                    "prompt": prompt,
                    "createdAt": now,
                    "status": "pending",
                })
        except PyMongoError as e:
            logger.error(f"Registration failed: {e}")
            raise StorageUnavailableError(f"Database unavailable: {e}") from e

        return str(result.inserted_id)


def describe(db: Database) -> Dict[str, Any]:
    """Connection diagnostics: collection names and number of analyses."""
    try:
        collections = sorted(db.list_collection_names())
    except PyMongoError as e:
        raise StorageUnavailableError(f"Database unavailable: {e}") from e
    return {"collections": collections, "analysesCount": AnalysisStore(db).count()}
