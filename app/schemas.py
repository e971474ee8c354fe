from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class Attachment(BaseModel):
    name: str
    url: str  # data URI or http(s) url


class BuildRequest(BaseModel):
    email: str
    secret: str
    task: str
    round: int
    nonce: str
    brief: str
    evaluation_url: str
    checks: List[str] = []
    attachments: List[Attachment] = []


class RepositoryIdentity(BaseModel):
    owner: str
    name: str
    url: str


class TaskState(BaseModel):
    identity: RepositoryIdentity
    pages_url: str


class PublishMode(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class EnsureOutcome(str, Enum):
    CREATED = "created"
    ALREADY_PRESENT = "already_present"
    FAILED = "failed"


class PublishResult(BaseModel):
    repo_url: str
    commit_sha: str
    pages_url: str


class NotificationPayload(BaseModel):
    email: str
    task: str
    round: int
    nonce: str
    repo_url: str
    commit_sha: str
    pages_url: str
