"""
resilience.aggregate — Multi-country comparison over the static table.

Scores every country in COUNTRY_TABLE from its calibrated fallback values
(never live data) and ranks them. Ranking is a stable sort by resilience
descending; ties keep table order.
"""

from __future__ import annotations

from typing import Any

from resilience.constants import (
    COUNTRY_TABLE,
    DEFAULT_REGIONAL_AVERAGE,
    GLOBAL_AVERAGE_RESILIENCE,
    REGIONAL_AVERAGES,
    CountryRecord,
)
from resilience.fallback import fallback_dataset
from resilience.scoring import calc_scores, classify


def score_table(table: tuple[CountryRecord, ...] = COUNTRY_TABLE) -> list[dict[str, Any]]:
    """One row per country, in table order."""
    rows: list[dict[str, Any]] = []
    for record in table:
        data = fallback_dataset(record)
        scores = calc_scores(data)
        rows.append({
            "name": record.profile.name,
            "iso2": record.profile.iso2,
            **scores.to_dict(),
            "gdp": data.gdp,
            "gdp_growth_pct": data.gdp_growth_pct,
            "co2_per_capita": data.co2_per_capita,
            "air_quality_score": data.air_quality_score,
            "forest_cover_pct": data.forest_cover_pct,
            "renewables_pct": data.renewables_pct,
        })
    return rows


def rank_countries(
    rows: list[dict[str, Any]] | None = None,
    selected: str | None = None,
) -> list[dict[str, Any]]:
    """Rank rows by resilience descending. sorted() is stable, so equal
    scores keep their table order."""
    if rows is None:
        rows = score_table()
    ordered = sorted(rows, key=lambda r: -r["resilience"])
    return [
        {
            "rank": i,
            "name": row["name"],
            "resilience": row["resilience"],
            "category": classify(row["resilience"]).label,
            "is_selected": row["name"] == selected,
        }
        for i, row in enumerate(ordered, 1)
    ]


def benchmark(country: str, resilience: int) -> dict[str, Any]:
    """Compare a resilience score with the global and regional averages."""
    regional = REGIONAL_AVERAGES.get(country, DEFAULT_REGIONAL_AVERAGE)
    return {
        "global_average": GLOBAL_AVERAGE_RESILIENCE,
        "regional_average": regional,
        "delta_vs_global": resilience - GLOBAL_AVERAGE_RESILIENCE,
        "delta_vs_regional": resilience - regional,
    }


def comparison(selected: str | None = None) -> dict[str, Any]:
    """All comparative views the presentation layer charts."""
    rows = score_table()
    return {
        "countries": rows,
        "ranking": rank_countries(rows, selected=selected),
        "env_vs_struct": [
            {"name": r["name"], "env_score": r["env_score"], "struct_score": r["struct_score"]}
            for r in rows
        ],
        "co2_vs_resilience": [
            {"name": r["name"], "co2_per_capita": r["co2_per_capita"], "resilience": r["resilience"]}
            for r in sorted(rows, key=lambda r: r["co2_per_capita"])
        ],
        "growth_vs_renewables": [
            {"name": r["name"], "gdp_growth_pct": r["gdp_growth_pct"], "renewables_pct": r["renewables_pct"]}
            for r in rows
        ],
    }
