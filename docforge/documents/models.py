"""Pydantic models for persisted documents and generation context."""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


DOCUMENT_KEY = "documentationResult"
METADATA_KEY = "generationMetadata"
CREDENTIAL_KEY_PREFIX = "apiKey_"


def credential_key(provider: str) -> str:
    return f"{CREDENTIAL_KEY_PREFIX}{provider}"


class Document(BaseModel):
    """A generated document: markdown text plus an optional diagram."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    text_content: str = Field(default="", alias="textContent")
    visual_content: Optional[str] = Field(default=None, alias="visualContent")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class GenerationMetadata(BaseModel):
    """Provider, model and prompt used to produce the current document."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    provider: str
    model: str
    prompt_text: str = Field(default="", alias="prompt")


class DiagramUpdate(BaseModel):
    """Payload of a document-updated event: two fenced diagram blocks.

    ``origin`` names the document field the diagram lives in.
    """

    model_config = ConfigDict(frozen=True)

    previous: str
    next: str
    origin: Literal["text", "visual"] = "text"


class RepairRequest(BaseModel):
    """Body posted to the generation endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    provider: str
    model: str
    api_key: str = Field(alias="apiKey")
    prompt: str


class RepairResponse(BaseModel):
    """Generation endpoint response; any one of the fields may carry the diagram."""

    model_config = ConfigDict(extra="ignore")

    text_content: Optional[str] = None
    documentation: Optional[str] = None
    visual_content: Optional[str] = None

    def payload_text(self) -> str:
        for value in (self.text_content, self.documentation, self.visual_content):
            if isinstance(value, str) and value.strip():
                return value
        return ""
