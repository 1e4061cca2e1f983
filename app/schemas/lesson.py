from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Annotated, List, Literal, Optional, Union
from datetime import datetime

from app.core.constants import DripTypeEnum, LessonTypeEnum


class ImmediateDrip(BaseModel):
    type: Literal["immediate"] = "immediate"


class DaysAfterEnrollmentDrip(BaseModel):
    type: Literal["days_after_enrollment"] = "days_after_enrollment"
    days: int = Field(..., ge=0)


class FixedDateDrip(BaseModel):
    type: Literal["fixed_date"] = "fixed_date"
    date: datetime


DripPolicy = Annotated[
    Union[ImmediateDrip, DaysAfterEnrollmentDrip, FixedDateDrip],
    Field(discriminator="type"),
]


class QuizQuestion(BaseModel):
    question: str
    options: List[str] = Field(default_factory=list)
    correct_answer_index: int = Field(..., ge=0, alias="correctAnswer")

    model_config = ConfigDict(populate_by_name=True)


class VideoContent(BaseModel):
    type: Literal["video"] = "video"
    video_url: Optional[str] = None


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    body: str = ""


class QuizContent(BaseModel):
    type: Literal["quiz"] = "quiz"
    questions: List[QuizQuestion] = Field(default_factory=list)


class AssignmentContent(BaseModel):
    type: Literal["assignment"] = "assignment"
    instructions: str = ""


LessonContent = Annotated[
    Union[VideoContent, TextContent, QuizContent, AssignmentContent],
    Field(discriminator="type"),
]


class LessonCreate(BaseModel):
    """Authoring payload, validated before it reaches the learning rules."""
    module_id: int
    title: str
    description: Optional[str] = None
    lesson_type: LessonTypeEnum = LessonTypeEnum.VIDEO
    content: Optional[LessonContent] = None
    duration: int = Field(0, ge=0)
    order: int = Field(0, ge=0)
    is_free: bool = False
    drip: DripPolicy = Field(default_factory=ImmediateDrip)

    @model_validator(mode="after")
    def content_matches_type(self):
        if self.content is not None and self.content.type != self.lesson_type:
            raise ValueError("Lesson content type must match lesson_type")
        return self

    def to_columns(self) -> dict:
        data = self.model_dump(exclude={"drip", "content"})
        data["content"] = self.content.model_dump(mode="json", by_alias=True) if self.content else None
        data["drip_type"] = DripTypeEnum(self.drip.type)
        data["drip_days"] = getattr(self.drip, "days", None)
        data["drip_date"] = getattr(self.drip, "date", None)
        return data


class LessonAvailability(BaseModel):
    lesson_id: int
    module_id: int
    title: str
    order: int
    unlocked: bool
    unlock_date: Optional[datetime] = None
    days_until_unlock: int = 0
    completed: bool = False
