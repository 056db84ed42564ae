from enum import Enum
from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from common.datetime_utils import utcnow_aware

YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


class JobStatus(str, Enum):
    """Pipeline status, in stage order. FAILED is absorbing."""
    QUEUED = "queued"
    RESOLVING_CHANNEL = "resolving channel"
    FETCHING_VIDEOS = "Fetching videos"
    VIDEOS_FETCHED = "videos fetched"
    GENERATING_TITLES = "Generating titles"
    TITLES_READY = "titles ready"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self) if self in _STATUS_ORDER else len(_STATUS_ORDER)

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.FAILED, JobStatus.TITLES_READY)

    def can_advance_to(self, target: "JobStatus") -> bool:
        """
        Whether a job in this status may move to ``target``.

        Nothing leaves a terminal status (TITLES_READY, FAILED). FAILED is
        reachable from any other status. Otherwise status never moves
        backwards; the same status is allowed so a stage can be redelivered
        after a worker crash.
        """
        if self.is_terminal:
            return False
        if target is JobStatus.FAILED:
            return True
        return target.rank >= self.rank


_STATUS_ORDER = [
    JobStatus.QUEUED,
    JobStatus.RESOLVING_CHANNEL,
    JobStatus.FETCHING_VIDEOS,
    JobStatus.VIDEOS_FETCHED,
    JobStatus.GENERATING_TITLES,
    JobStatus.TITLES_READY,
]


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire and in Redis"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Video(CamelModel):
    """Video descriptor as returned by the channel lookup API"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    type: Optional[str] = "video"
    title: str = ""
    thumbnail: Optional[Any] = None
    published_at: Optional[str] = None
    views: Optional[Any] = None
    channel: Optional[Any] = None
    is_live: bool = False

    @property
    def watch_url(self) -> str:
        return YOUTUBE_WATCH_URL.format(video_id=self.id)


class ImprovedTitle(CamelModel):
    original: str
    improved: str
    rationale: str = ""
    url: Optional[str] = None


class ChannelDescriptor(CamelModel):
    """Channel lookup response. ``id`` missing means "not found"."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    title: Optional[str] = None
    subscriber: Optional[Any] = None
    videos: Optional[Any] = None
    results: Optional[Any] = None

    @property
    def found(self) -> bool:
        return bool(self.id)

    def video_section(self) -> List[Dict[str, Any]]:
        """Videos of the results entry labelled "videos" (case-insensitive)"""
        if not isinstance(self.results, list):
            return []
        for section in self.results:
            if not isinstance(section, dict):
                continue
            title = section.get("title")
            if isinstance(title, str) and title.lower() == "videos":
                videos = section.get("videos")
                return videos if isinstance(videos, list) else []
        return []


class Job(CamelModel):
    """The single persistent entity. One record per job_id."""
    job_id: str
    email: Optional[str] = None
    channel: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    error: Optional[str] = None
    channel_id: Optional[str] = None
    channel_name: Optional[str] = None
    videos: Optional[List[Video]] = None
    improved_titles: Optional[List[ImprovedTitle]] = None
    created_at: datetime = Field(default_factory=utcnow_aware)
    updated_at: Optional[datetime] = None

    @classmethod
    def create_new(cls, job_id: str, email: str, channel: str) -> "Job":
        now = utcnow_aware()
        return cls(
            job_id=job_id,
            email=email,
            channel=channel,
            status=JobStatus.QUEUED,
            created_at=now,
            updated_at=now,
        )

    def advance(self, status: JobStatus, **fields: Any) -> "Job":
        """
        Copy of this job moved to ``status`` with ``fields`` overwritten.

        Raises:
            InvalidStatusTransition: if the status machine forbids the move
        """
        if not self.status.can_advance_to(status):
            raise InvalidStatusTransition(self.job_id, self.status, status)
        update: Dict[str, Any] = {"status": status, "updated_at": utcnow_aware(), **fields}
        if status is not JobStatus.FAILED:
            update["error"] = None
        return self.model_copy(update=update)

    def fail(self, error: str) -> "Job":
        return self.advance(JobStatus.FAILED, error=error)


class InvalidStatusTransition(Exception):
    def __init__(self, job_id: str, current: JobStatus, target: JobStatus):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(
            f"Job {job_id} cannot move from '{current.value}' to '{target.value}'"
        )


class SubmitRequest(BaseModel):
    """
    Inbound submission. ``email`` is accepted as ``{"email": "..."}`` or a
    plain string; required-field checks happen in the handler so a missing
    field answers 400 instead of 422.
    """
    model_config = ConfigDict(populate_by_name=True)

    channel: Optional[str] = None
    email: Optional[str] = None
    job_id: Optional[str] = Field(default=None, alias="jobId")

    @field_validator("email", mode="before")
    @classmethod
    def unwrap_email(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return v.get("email")
        return v

    @field_validator("channel", "email", "job_id")
    @classmethod
    def blank_is_missing(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class SubmitResponse(BaseModel):
    success: bool = True
    job_id: str = Field(serialization_alias="jobId")
    message: str


class JobListResponse(BaseModel):
    jobs: List[str]
    total: int
