from enum import Enum
from typing import List
from pydantic import BaseModel, ConfigDict, Field, field_validator

NOT_SPECIFIED = "Not specified"


class LanguageTag(str, Enum):
    """Languages the pipeline can produce output in."""

    ENGLISH = "English"
    HINDI = "Hindi"
    MARATHI = "Marathi"
    GUJARATI = "Gujarati"
    TAMIL = "Tamil"
    BENGALI = "Bengali"

    @classmethod
    def parse(cls, value: str) -> "LanguageTag":
        """Case-insensitive lookup by name or value."""
        for tag in cls:
            if value.strip().lower() in (tag.value.lower(), tag.name.lower()):
                return tag
        raise ValueError(f"Unsupported language: {value}")


class DoctorProfile(BaseModel):
    """Read-only clinician profile threaded through every stage."""

    model_config = ConfigDict(frozen=True)

    qualification: str = Field(default="MBBS", min_length=1, max_length=200)
    can_prescribe_allopathic: bool = True

    @field_validator('qualification')
    @classmethod
    def validate_qualification(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Qualification cannot be empty')
        return v.strip()


class MedicationLine(BaseModel):
    """One medication of a prescription plan."""

    name: str = Field(..., description="Medication name, canonical where the dictionary knows it")
    dosage: str = Field(default=NOT_SPECIFIED)
    frequency: str = Field(default=NOT_SPECIFIED)
    route: str = Field(default=NOT_SPECIFIED)

    @field_validator('dosage', 'frequency', 'route', mode='before')
    @classmethod
    def default_missing(cls, v):
        if v is None or not str(v).strip():
            return NOT_SPECIFIED
        return str(v).strip()

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Medication name cannot be empty')
        return v.strip()

    def render(self) -> str:
        return f"- {self.name} | {self.dosage} | {self.frequency} | {self.route}"


class PrescriptionPlan(BaseModel):
    """Medication lines plus non-medication advice."""

    medications: List[MedicationLine] = Field(default_factory=list)
    advice: List[str] = Field(default_factory=list)

    @field_validator('advice')
    @classmethod
    def drop_blank_advice(cls, v: List[str]) -> List[str]:
        return [item.strip() for item in v if item and item.strip()]


class ClinicalRecord(BaseModel):
    """Everything the clinical-note pipeline produced for one encounter."""

    cleaned_transcript: str = ""
    note: str = ""
    plan: str = ""
    text: str = Field(default="", description="Composed note + plan")
    degraded_stages: List[str] = Field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return bool(self.degraded_stages)
