"""Message template rendering for record notifications."""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from app.db.models.record import PrisonRecord

EMPTY_FALLBACK = "Nenhum"
# "observações" is feminine
EMPTY_FALLBACK_FEMININE = "Nenhuma"


def format_datetime_ptbr(value: datetime, tz_name: str = "America/Sao_Paulo") -> str:
    """``dd/mm/yyyy, HH:MM:SS`` in the given zone. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(ZoneInfo(tz_name)).strftime("%d/%m/%Y, %H:%M:%S")


def placeholder_values(record: PrisonRecord, tz_name: str) -> list[tuple[str, str]]:
    # order matters: substitution runs top to bottom
    return [
        ("{individualName}", record.individual_name),
        ("{fixedId}", record.fixed_id or EMPTY_FALLBACK),
        ("{dateTime}", format_datetime_ptbr(record.date_time, tz_name)),
        ("{location}", record.location),
        ("{reason}", record.reason),
        ("{articles}", record.articles or EMPTY_FALLBACK),
        ("{observations}", record.observations or EMPTY_FALLBACK_FEMININE),
        ("{seizedItems}", record.seized_items or EMPTY_FALLBACK),
        ("{responsibleOfficers}", record.responsible_officers),
        ("{createdBy}", record.created_by),
    ]


def render_message(template: str, record: PrisonRecord, tz_name: str = "America/Sao_Paulo") -> str:
    message = template
    for placeholder, value in placeholder_values(record, tz_name):
        message = message.replace(placeholder, value)
    return message
