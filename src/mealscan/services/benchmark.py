"""Benchmark dataset management."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter

from mealscan.domain.evaluation import INGESTION_CONTEXT, BenchmarkItem

_DATASET_ADAPTER = TypeAdapter(list[BenchmarkItem])

_logger = logging.getLogger(__name__)


class BenchmarkRepository(Protocol):
    """Persistence interface for benchmark items."""

    def create_item(self, item: BenchmarkItem) -> str:
        """Store an item and return its id."""

    def list_items(
        self, ids: list[str] | None, limit: int | None
    ) -> list[BenchmarkItem]:
        """Return items, newest first, optionally restricted to ``ids``."""

    def delete_item(self, item_id: str) -> None:
        """Delete one item."""

    def delete_all(self) -> int:
        """Delete every item and return how many were removed."""


@dataclass
class BenchmarkService:
    """Adds, lists and bulk-loads benchmark items."""

    repository: BenchmarkRepository

    def add_item(self, payload: BenchmarkItem | dict[str, object]) -> str:
        """Validate and store a benchmark item.

        Ground-truth totals must agree with the sum of the foods.
        """
        data = (
            payload.model_dump(by_alias=True)
            if isinstance(payload, BenchmarkItem)
            else payload
        )
        item = BenchmarkItem.model_validate(data, context=INGESTION_CONTEXT)
        return self.repository.create_item(item)

    def list_items(
        self, ids: list[str] | None = None, limit: int | None = None
    ) -> list[BenchmarkItem]:
        """Return stored items."""
        return self.repository.list_items(ids or None, limit)

    def delete_item(self, item_id: str) -> None:
        """Remove an item."""
        self.repository.delete_item(item_id)

    def load_dataset(self, path: Path) -> list[str]:
        """Replace all stored items with the JSON array at ``path``.

        The whole file is validated before anything is deleted.
        """
        items = _DATASET_ADAPTER.validate_python(
            json.loads(path.read_text(encoding="utf-8")), context=INGESTION_CONTEXT
        )
        deleted = self.repository.delete_all()
        _logger.info("Deleted %s existing benchmark items", deleted)

        created_ids = []
        for item in items:
            item_id = self.repository.create_item(item)
            created_ids.append(item_id)
            label = item.metadata.description if item.metadata else None
            _logger.info(
                "Added benchmark item %s (%s): foods=%s total_calories=%s",
                item_id,
                label or item.image_url,
                len(item.ground_truth.foods),
                item.ground_truth.total_calories,
            )
        return created_ids
