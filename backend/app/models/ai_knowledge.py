"""Documentation corpus shapes used by AI tasks.

CorpusDocument — read-only view of a portal document (grounded chat context).
ImportedDoc — one titled sub-document produced by structured extraction.
"""
from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocStatus(str, enum.Enum):
    draft = "DRAFT"
    published = "PUBLISHED"
    archived = "ARCHIVED"


class CorpusDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    content: str = ""
    status: DocStatus = DocStatus.draft

    @field_validator("status", mode="before")
    @classmethod
    def _upper_status(cls, value):
        return value.upper() if isinstance(value, str) else value


class ImportedDoc(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    category_name: str = Field(default="", alias="categoryName")
    content: str = ""
