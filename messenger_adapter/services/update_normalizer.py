"""Turn Facebook ``entry[].messaging[]`` batches into NormalizedUpdates."""

import copy
from typing import Any, Iterator

import logfire
from pydantic import ValidationError

from messenger_adapter.models.messenger import (
    NormalizedUpdate,
    UpdateKind,
    classify_update,
    parse_event,
)


def _build_update(raw_update: dict[str, Any], entry_snapshot: dict[str, Any]) -> NormalizedUpdate:
    data = copy.deepcopy(raw_update)
    kind = UpdateKind(classify_update(data))
    return NormalizedUpdate(
        kind=kind,
        event=parse_event(data),
        data=data,
        raw=entry_snapshot,
    )


def normalize_update(raw_update: dict[str, Any], entry: dict[str, Any]) -> NormalizedUpdate:
    """Build one NormalizedUpdate from a raw record and its entry.

    Both the record and the entry are deep-copied, so the result shares no
    mutable state with the request body or with any other update.

    Raises:
        pydantic.ValidationError: If the record doesn't fit its variant
    """
    return _build_update(raw_update, copy.deepcopy(entry))


def iter_normalized_updates(entries: list[dict[str, Any]]) -> Iterator[NormalizedUpdate]:
    """Yield normalized updates in entry order, then ``messaging`` order.

    ``entries`` are entry objects as validated by ``WebhookPayload``. Each
    entry is snapshotted once and the snapshot is shared by all of its
    updates, so a batch costs time linear in its size. Entries without a
    ``messaging`` list (e.g. ``standby`` or ``changes`` callbacks) are
    skipped, as are records that fail validation.
    """
    for entry in entries:
        messaging = entry.get("messaging")
        if not isinstance(messaging, list):
            logfire.info(
                "Webhook entry has no messaging records",
                page_id=entry.get("id"),
                keys=sorted(entry.keys()),
            )
            continue

        entry_snapshot = copy.deepcopy(entry)

        for index, raw_update in enumerate(messaging):
            if not isinstance(raw_update, dict):
                logfire.warning(
                    "Skipping non-object messaging record",
                    page_id=entry.get("id"),
                    index=index,
                )
                continue
            try:
                yield _build_update(raw_update, entry_snapshot)
            except ValidationError as e:
                logfire.warning(
                    "Skipping malformed messaging record",
                    page_id=entry.get("id"),
                    index=index,
                    kind=classify_update(raw_update),
                    error_count=e.error_count(),
                    errors=e.errors(include_input=False),
                )


def normalize_entries(entries: list[dict[str, Any]]) -> list[NormalizedUpdate]:
    """Normalize a whole callback batch."""
    return list(iter_normalized_updates(entries))
