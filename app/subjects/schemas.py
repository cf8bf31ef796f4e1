"""Pydantic models for the subject batches produced by the extraction pipeline."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import AgendaBucket, ProximityImportance, TopicImportance


class IncomingLocation(BaseModel):
    """Point location in GeoJSON order: ``coordinates = [lng, lat]``."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: str = "point"
    text: str = ""
    coordinates: tuple[float, float]

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class IncomingSpeakerContribution(BaseModel):
    speaker_id: str | None = Field(default=None, alias="speakerId")
    speaker_name: str | None = Field(default=None, alias="speakerName")
    text: str

    model_config = ConfigDict(populate_by_name=True)


class IncomingSubject(BaseModel):
    """One subject of an extraction pass."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    agenda_item_index: int | AgendaBucket = Field(..., alias="agendaItemIndex")
    topic_label: str | None = Field(default=None, alias="topicLabel")
    introduced_by_person_id: str | None = Field(default=None, alias="introducedByPersonId")
    speaker_contributions: list[IncomingSpeakerContribution] = Field(
        default_factory=list, alias="speakerContributions"
    )
    topic_importance: TopicImportance | None = Field(default=None, alias="topicImportance")
    proximity_importance: ProximityImportance | None = Field(default=None, alias="proximityImportance")
    location: IncomingLocation | None = None
    context: str | None = None

    @property
    def bucket(self) -> AgendaBucket | None:
        if isinstance(self.agenda_item_index, AgendaBucket):
            return self.agenda_item_index
        return None

    @property
    def key(self) -> int | str:
        """Reconciliation key: the numeric agenda index or the bucket name."""
        if isinstance(self.agenda_item_index, AgendaBucket):
            return self.agenda_item_index.value
        return self.agenda_item_index
