"""Pydantic models for the persisted state envelope."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt

ENVELOPE_VERSION = 1
STATE_STORAGE_KEY = "store"


class PartializedState(BaseModel):
    """The subset of runtime state that survives a reload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chain_id: Optional[StrictInt] = Field(default=None, alias="chainId")


class PersistedEnvelope(BaseModel):
    """Versioned wrapper written under ``<prefix>.store``."""

    state: PartializedState = Field(default_factory=PartializedState)
    version: int = ENVELOPE_VERSION
