# voicescribe/schemas/webhook.py
"""
Pydantic schemas for the WhatsApp Cloud API webhook payload.
Only the parts the queue needs are modelled; everything else is kept as-is.
"""
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SENDER_NAME = "Ismeretlen"  # "Unknown"


class Profile(BaseModel):
    model_config = ConfigDict(extra="allow")
    name: Optional[str] = None


class Contact(BaseModel):
    model_config = ConfigDict(extra="allow")
    wa_id: Optional[str] = None
    profile: Optional[Profile] = None


class ChangeValue(BaseModel):
    model_config = ConfigDict(extra="allow")
    messages: List[Dict[str, Any]] = []  # Raw message objects, passed to the queue untouched
    contacts: List[Contact] = []


class Change(BaseModel):
    model_config = ConfigDict(extra="allow")
    field: Optional[str] = None
    value: ChangeValue = Field(default_factory=ChangeValue)


class Entry(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: Optional[str] = None
    changes: List[Change] = []


class WebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")
    object: Optional[str] = None
    entry: List[Entry] = []

    def iter_messages(self) -> Iterator[Tuple[Dict[str, Any], str, str]]:
        """
        Yield (message, sender phone, sender display name) for every message in the payload.
        Status callbacks carry no messages and yield nothing.
        """
        for entry in self.entry:
            for change in entry.changes:
                names = {
                    c.wa_id: c.profile.name
                    for c in change.value.contacts
                    if c.wa_id and c.profile and c.profile.name
                }
                fallback = next(
                    (c.profile.name for c in change.value.contacts if c.profile and c.profile.name),
                    DEFAULT_SENDER_NAME,
                )
                for message in change.value.messages:
                    sender = str(message.get("from") or "")
                    yield message, sender, names.get(sender, fallback)
