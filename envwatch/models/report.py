from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from envwatch.models.status import ReportCategory, ReportStatus


class Location(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    lat: float
    lng: float
    address: Optional[str] = None


class AIAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    detected: bool = False
    class_: str = Field(default="Unknown", alias="class")
    confidence: float = 0.0
    raw_result: Dict[str, Any] = Field(default_factory=dict)


class Report(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, use_enum_values=True, validate_default=True
    )

    id: Optional[str] = None
    ticket_id: str
    image_url: str
    location: Location
    description: str
    status: ReportStatus = ReportStatus.PENDING
    category: ReportCategory = ReportCategory.BUTUH_VERIFIKASI
    ai_analysis: AIAnalysis = Field(default_factory=AIAnalysis)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    def to_document(self) -> dict:
        """Mongo document for this report; `_id` is assigned by the store."""
        return self.model_dump(by_alias=True, exclude={"id"})

    @classmethod
    def from_document(cls, doc: dict) -> "Report":
        data = {k: v for k, v in doc.items() if k != "_id"}
        if "_id" in doc:
            data["id"] = str(doc["_id"])
        return cls.model_validate(data)
