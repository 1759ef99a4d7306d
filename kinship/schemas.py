"""Pydantic models for stored student notes and the HTTP API bodies."""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Literal


class _NotesModel(BaseModel):
    # Stored blobs use camelCase keys; unknown keys are kept as-is.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class FamilyRelationship(_NotesModel):
    related_student_id: str
    related_student_name: str = ""
    # Plain string on purpose: legacy blobs carry retired values the cleaner must see.
    relationship_type: str
    confidence: Optional[str] = None
    inferred_from: Optional[str] = None
    custom_relationship: Optional[str] = None
    created_at: Optional[str] = None


class GuardianRelationship(_NotesModel):
    guardian_id: str
    guardian_name: str = ""
    guardian_of: str
    relationship_type: str
    student_id: Optional[str] = None
    custom_relationship: Optional[str] = None


class StudentNotes(_NotesModel):
    family_relationships: list[FamilyRelationship] = Field(default_factory=list)
    guardian_relationships: list[GuardianRelationship] = Field(default_factory=list)


# ── API bodies ──

class StudentCreate(BaseModel):
    name: str
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("name must not be empty")
        return v.strip()


class StudentOut(BaseModel):
    id: str
    school_id: str
    name: str
    notes: Optional[str] = None


class GuardianCreate(BaseModel):
    student_id: str
    name: str
    relation: Literal["MAE", "PAI", "IRMAO", "TIO", "AVO", "OUTRO"]
    email: Optional[str] = None
    phone: Optional[str] = None


class GuardianOut(BaseModel):
    id: str
    student_id: str
    name: str
    relation: str
    email: Optional[str] = None
    phone: Optional[str] = None
