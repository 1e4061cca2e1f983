from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class QuizSubmission(BaseModel):
    """One option index per question, aligned by position. Unanswered slots may be null."""
    answers: List[Optional[int]] = Field(default_factory=list)


class QuizResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    score: float
    correct_answers: int
    total_questions: int
    passed: bool
