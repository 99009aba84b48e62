"""Supabase repository for benchmark items."""

import json
from dataclasses import dataclass

from supabase import Client

from mealscan.domain.evaluation import BenchmarkItem
from mealscan.services.benchmark import BenchmarkRepository

_COLUMNS = "id, image_url, ground_truth, metadata, created_at"
# PostgREST refuses an unfiltered delete.
_NIL_UUID = "00000000-0000-0000-0000-000000000000"


@dataclass
class SupabaseBenchmarkRepository(BenchmarkRepository):
    """Supabase implementation for benchmark items."""

    client: Client

    def create_item(self, item: BenchmarkItem) -> str:
        """Insert a benchmark item and return its id."""
        response = (
            self.client.table("benchmark_items")
            .insert(
                {
                    "image_url": item.image_url,
                    "ground_truth": item.ground_truth.model_dump(by_alias=True),
                    "metadata": item.metadata.model_dump(
                        by_alias=True, exclude_none=True
                    )
                    if item.metadata
                    else None,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create benchmark item")
        return str(response.data[0]["id"])

    def list_items(
        self, ids: list[str] | None, limit: int | None
    ) -> list[BenchmarkItem]:
        """Return benchmark items, newest first."""
        query = self.client.table("benchmark_items").select(_COLUMNS)
        if ids:
            query = query.in_("id", ids)
        query = query.order("created_at", desc=True)
        if limit is not None:
            query = query.limit(limit)
        response = query.execute()
        return [_parse_item(row) for row in response.data or []]

    def delete_item(self, item_id: str) -> None:
        """Delete a benchmark item."""
        self.client.table("benchmark_items").delete().eq("id", item_id).execute()

    def delete_all(self) -> int:
        """Delete every benchmark item."""
        response = (
            self.client.table("benchmark_items").delete().neq("id", _NIL_UUID).execute()
        )
        return len(response.data or [])


def _parse_item(row: dict[str, object]) -> BenchmarkItem:
    return BenchmarkItem.model_validate(
        {
            "id": str(row["id"]),
            "imageUrl": row.get("image_url"),
            "groundTruth": load_json(row.get("ground_truth")),
            "metadata": load_json(row.get("metadata")),
            "createdAt": row.get("created_at"),
        }
    )


def load_json(value: object) -> object:
    """Accept both jsonb columns and JSON stored as text."""
    if isinstance(value, str):
        return json.loads(value)
    return value
