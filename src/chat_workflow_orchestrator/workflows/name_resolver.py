"""Resolve staff names and nicknames to staff record ids."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from chat_workflow_orchestrator.capabilities.provider import CapabilityProvider
from chat_workflow_orchestrator.llm.provider import LLMProvider
from chat_workflow_orchestrator.state.manager import Clock, utc_now
from chat_workflow_orchestrator.workflows.errors import CapabilityExecutionError
from chat_workflow_orchestrator.workflows.formatting import result_rows

logger = logging.getLogger(__name__)

DISPLAY_NAME_PROPERTY = "表示名"
FULL_NAME_PROPERTY = "氏名"
NICKNAMES_PROPERTY = "別名"


@dataclass(frozen=True, slots=True)
class StaffMember:
    id: str
    display_name: str
    full_name: str = ""
    nicknames: tuple[str, ...] = ()

    def matches(self, name: str) -> bool:
        return name in (self.display_name, self.full_name) or name in self.nicknames


@dataclass(frozen=True, slots=True)
class NameResolution:
    matched: bool
    staff_id: str | None = None
    confidence: float = 0.0
    reason: str = ""


def _text(prop: Any, kind: str) -> str:
    if not isinstance(prop, Mapping):
        return ""
    return "".join(
        str(item.get("plain_text", "")) for item in prop.get(kind) or [] if isinstance(item, Mapping)
    )


def parse_staff(row: Mapping[str, Any]) -> StaffMember:
    properties = row.get("properties") or {}
    nicknames = properties.get(NICKNAMES_PROPERTY) or {}
    return StaffMember(
        id=str(row.get("id", "")),
        display_name=_text(properties.get(DISPLAY_NAME_PROPERTY), "rich_text"),
        full_name=_text(properties.get(FULL_NAME_PROPERTY), "title"),
        nicknames=tuple(
            str(item.get("name"))
            for item in nicknames.get("multi_select") or []
            if isinstance(item, Mapping) and item.get("name")
        ),
    )


def build_name_resolution_prompt(name: str, staff: list[StaffMember]) -> str:
    lines = []
    for member in staff:
        nicknames = ", ".join(member.nicknames) or "none"
        lines.append(
            f"- ID: {member.id}, display name: {member.display_name}, "
            f"full name: {member.full_name or 'unknown'}, nicknames: {nicknames}"
        )
    roster = "\n".join(lines)
    return (
        f'Identify the staff member who best matches the name "{name}".\n'
        "Consider abbreviations, nicknames and similar ways of referring to a person, "
        "not just exact matches.\n\n"
        f"Staff list:\n{roster}\n\n"
        "Answer in JSON with this format:\n"
        '{"matched": true or false, "staffId": "id of the matching staff member", '
        '"confidence": number between 0.0 and 1.0, "reason": "short explanation"}\n'
        'If nobody matches, return "matched": false.'
    )


@dataclass
class NameResolver:
    """Maps a person's name to a staff record id.

    Exact display-name, full-name or nickname matches are resolved locally;
    anything else is delegated to the language model. The staff list is
    cached for ``cache_ttl``.
    """

    llm: LLMProvider
    provider: CapabilityProvider
    staff_db_id: str
    cache_ttl: timedelta = timedelta(minutes=15)
    clock: Clock = utc_now
    _cache: list[StaffMember] = field(default_factory=list, init=False)
    _cached_at: datetime | None = field(default=None, init=False)

    async def staff(self) -> list[StaffMember]:
        now = self.clock()
        if self._cache and self._cached_at is not None and now - self._cached_at < self.cache_ttl:
            return self._cache

        response = await self.provider.execute("queryDatabase", {"database_id": self.staff_db_id})
        if not response.success:
            raise CapabilityExecutionError(
                "queryDatabase", response.error or "unknown error", response.code
            )
        self._cache = [parse_staff(row) for row in result_rows(response.data) or []]
        self._cached_at = now
        logger.info(f"Loaded {len(self._cache)} staff members")
        return self._cache

    async def resolve(self, name: str) -> NameResolution:
        if not self.staff_db_id:
            return NameResolution(matched=False, reason="staff database is not configured")
        try:
            staff = await self.staff()
            for member in staff:
                if member.matches(name):
                    logger.info(f"Name {name!r} matched {member.display_name!r} exactly")
                    return NameResolution(
                        matched=True, staff_id=member.id, confidence=1.0, reason="exact match"
                    )

            response = await self.llm.complete_json(build_name_resolution_prompt(name, staff))
            raw = json.loads(response.content)
        except Exception as e:
            logger.error(f"Name resolution failed for {name!r}: {e}")
            return NameResolution(matched=False, reason=f"error: {e}")

        if not isinstance(raw, dict):
            raw = {}
        staff_id = raw.get("staffId")
        if not raw.get("matched") or staff_id not in {member.id for member in staff}:
            logger.warning(f"Name {name!r} could not be resolved")
            return NameResolution(matched=False, reason=str(raw.get("reason", "")))

        try:
            confidence = float(raw.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        logger.info(f"Name {name!r} resolved to {staff_id!r} (confidence {confidence})")
        return NameResolution(
            matched=True,
            staff_id=staff_id,
            confidence=confidence,
            reason=str(raw.get("reason", "")),
        )
