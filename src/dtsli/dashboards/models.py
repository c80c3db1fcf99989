"""
Decoded dashboard JSON (``/api/config/v1/dashboards/<id>``).

Only the fields the SLI engine reads are modelled. Tiles are classified
into a closed set of kinds so the resolver can dispatch exhaustively.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TileKind(str, Enum):
    """Tile variants the resolver distinguishes."""

    CUSTOM_CHARTING = "CUSTOM_CHARTING"
    MARKDOWN = "MARKDOWN"
    DTAQL = "DTAQL"
    SYNTHETIC_TEST = "SYNTHETIC_TESTS"
    OTHER = "OTHER"

    @classmethod
    def from_tile_type(cls, tile_type: str) -> TileKind:
        normalized = (tile_type or "").upper()
        # both singular and plural spellings appear in dashboard exports
        if normalized in ("SYNTHETIC_TEST", "SYNTHETIC_TESTS"):
            return cls.SYNTHETIC_TEST
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


def _management_zone_id(raw: Any) -> str:
    if isinstance(raw, dict):
        value = raw.get("id")
        return "" if value is None else str(value)
    return ""


@dataclass(frozen=True)
class ChartDimension:
    """A dimension referenced in a chart series: split by, or filtered to values."""

    id: str
    name: str = ""
    values: tuple[str, ...] = ()

    @property
    def is_filtered(self) -> bool:
        return bool(self.values)


@dataclass(frozen=True)
class SeriesSpec:
    """One series of a custom chart."""

    metric: str
    aggregation: str = ""
    percentile: int | None = None
    entity_type: str = ""
    dimensions: tuple[ChartDimension, ...] = ()

    def dimension(self, index: int) -> ChartDimension | None:
        for dim in self.dimensions:
            if dim.id == str(index):
                return dim
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SeriesSpec:
        percentile = data.get("percentile")
        dimensions = tuple(
            ChartDimension(
                id=str(d.get("id", "")),
                name=d.get("name") or "",
                values=tuple(str(v) for v in d.get("values") or []),
            )
            for d in data.get("dimensions") or []
        )
        return cls(
            metric=data.get("metric", ""),
            aggregation=data.get("aggregation") or "",
            percentile=int(percentile) if percentile not in (None, "") else None,
            entity_type=data.get("entityType") or "",
            dimensions=dimensions,
        )


@dataclass(frozen=True)
class Tile:
    """A dashboard tile; which fields are meaningful depends on ``kind``."""

    kind: TileKind
    tile_type: str
    name: str = ""
    title: str = ""
    markdown: str = ""
    query: str = ""
    visualization: str = ""
    management_zone_id: str = ""
    series: tuple[SeriesSpec, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tile:
        tile_type = data.get("tileType", "")
        kind = TileKind.from_tile_type(tile_type)
        filter_config = data.get("filterConfig") or {}
        chart_config = filter_config.get("chartConfig") or {}

        if kind is TileKind.DTAQL:
            title = data.get("customName") or data.get("name") or ""
        else:
            title = filter_config.get("customName") or data.get("name") or ""

        return cls(
            kind=kind,
            tile_type=tile_type,
            name=data.get("name") or "",
            title=title,
            markdown=data.get("markdown") or "",
            query=data.get("query") or "",
            visualization=data.get("type") or "",
            management_zone_id=_management_zone_id(
                (data.get("tileFilter") or {}).get("managementZone")
            ),
            series=tuple(SeriesSpec.from_dict(s) for s in chart_config.get("series") or []),
        )


@dataclass(frozen=True)
class Dashboard:
    """A dashboard definition. Consumed, never modified."""

    id: str
    name: str
    owner: str = ""
    management_zone_id: str = ""
    tiles: tuple[Tile, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dashboard:
        metadata = data.get("dashboardMetadata") or {}
        dashboard_filter = metadata.get("dashboardFilter") or {}
        return cls(
            id=data.get("id", ""),
            name=metadata.get("name", ""),
            owner=metadata.get("owner", ""),
            management_zone_id=_management_zone_id(dashboard_filter.get("managementZone")),
            tiles=tuple(Tile.from_dict(t) for t in data.get("tiles") or []),
            raw=data,
        )
