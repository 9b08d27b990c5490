from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from envwatch.models.report import AIAnalysis, Report


class StatusUpdate(BaseModel):
    # Plain strings: the enumerations are checked by the workflow so that an
    # unknown value is a 400, not a 422.
    status: Optional[str] = None
    category: Optional[str] = None


class ReportCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    success: bool = True
    ticket_id: str
    message: str
    data: Report
    image_url: str
    ai_result: AIAnalysis
    category: str


class ReportOut(BaseModel):
    success: bool = True
    data: Report


class ReportList(BaseModel):
    success: bool = True
    data: List[Report]
