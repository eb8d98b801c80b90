from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator


class OutputContract(str, Enum):
    """Shape of the response requested from the reasoning service."""

    FREE_TEXT = "free_text"
    JSON_SCHEMA = "json_schema"


class TextPart(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class BlobPart(BaseModel):
    """Binary content part, e.g. an audio segment."""

    kind: Literal["blob"] = "blob"
    mime_type: str
    data: bytes = Field(..., min_length=1)


ContentPart = Union[TextPart, BlobPart]


class ReasoningRequest(BaseModel):
    """A single call to the external reasoning service."""

    model_config = ConfigDict(frozen=True)

    model: str
    system_instruction: str
    parts: List[ContentPart] = Field(..., min_length=1)
    output: OutputContract = OutputContract.FREE_TEXT
    response_schema: Optional[Dict[str, Any]] = None
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)

    @model_validator(mode='after')
    def schema_matches_contract(self) -> 'ReasoningRequest':
        if self.output is OutputContract.JSON_SCHEMA and not self.response_schema:
            raise ValueError("JSON_SCHEMA output requires a response_schema")
        return self

    @property
    def text(self) -> str:
        """Concatenated text parts, used by logging and the mock provider."""
        return "\n".join(p.text for p in self.parts if isinstance(p, TextPart))


class TextResult(BaseModel):
    """Free-text response variant."""

    kind: Literal["text"] = "text"
    text: str


class StructuredResult(BaseModel):
    """Schema-constrained response variant, already parsed from JSON."""

    kind: Literal["structured"] = "structured"
    data: Any
    raw_text: str = ""


ReasoningResult = Union[TextResult, StructuredResult]
