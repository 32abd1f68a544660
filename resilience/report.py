"""
resilience.report — CLI: one-country resilience report.

Usage:
    python -m resilience.report India
    python -m resilience.report IN --offline --json
    python -m resilience.report Brazil --disaster flood
    python -m resilience.report USA --policy co2=40,renew=30,air=20,trees=2

Exit codes:
    0: Report produced (live or fallback data).
    2: Usage error or unsupported country.

Output:
    Default: human-readable report to stdout.
    --json: the same report as one JSON document.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import sys
from typing import Any

from resilience.aggregate import benchmark
from resilience.constants import DISASTER_CATALOG, SUPPORTED_COUNTRIES, UnknownCountryError
from resilience.disaster import simulate_disaster
from resilience.fetchers import HttpIndicatorFetcher, IndicatorFetcher, OfflineFetcher
from resilience.policy import PolicyLevers, simulate_policy
from resilience.projection import trajectory
from resilience.ripple import simulate_ripple
from resilience.session import AnalysisContext, SelectionSession

EXIT_OK = 0
EXIT_USAGE = 2

_LEVER_KEYS = {
    "co2": "co2_reduction_pct",
    "renew": "renewable_adoption_pct",
    "air": "air_quality_improvement_pct",
    "trees": "tree_restoration_multiplier",
}


def parse_levers(text: str) -> PolicyLevers:
    """Parse ``co2=40,renew=30,air=20,trees=2``. Omitted levers stay at 0.

    Values must be finite numbers; out-of-range numbers are clamped by
    PolicyLevers.
    """
    values: dict[str, float] = {}
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        key = key.strip().lower()
        if not sep or key not in _LEVER_KEYS:
            raise argparse.ArgumentTypeError(
                f"bad lever '{part}'; expected KEY=VALUE with KEY in {sorted(_LEVER_KEYS)}"
            )
        try:
            number = float(value)
        except ValueError:
            raise argparse.ArgumentTypeError(
                f"bad lever '{part}'; value must be a number"
            ) from None
        if not math.isfinite(number):
            raise argparse.ArgumentTypeError(f"bad lever '{part}'; value must be finite")
        values[_LEVER_KEYS[key]] = number
    return PolicyLevers.model_validate(values)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resilience.report",
        description="Climate resilience report for one supported country.",
    )
    parser.add_argument(
        "country",
        help=f"Country name or ISO2 code ({', '.join(SUPPORTED_COUNTRIES)}).",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the live sources and use calibrated fallbacks only.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output the report as JSON.",
    )
    parser.add_argument(
        "--policy",
        type=parse_levers,
        default=None,
        metavar="LEVERS",
        help="Policy levers, e.g. co2=40,renew=30,air=20,trees=2.",
    )
    parser.add_argument(
        "--disaster",
        choices=[d.id for d in DISASTER_CATALOG],
        default=None,
        help="Overlay one disaster scenario.",
    )
    return parser


async def _load(country: str, fetcher: IndicatorFetcher) -> AnalysisContext | None:
    session = SelectionSession(fetcher)
    try:
        return await session.select(country)
    finally:
        if isinstance(fetcher, HttpIndicatorFetcher):
            await fetcher.aclose()


def build_report(
    ctx: AnalysisContext,
    levers: PolicyLevers | None = None,
    disaster_id: str | None = None,
) -> dict[str, Any]:
    scores = ctx.scores
    report = ctx.to_dict()
    report["benchmark"] = benchmark(ctx.country, scores.resilience)
    report["trajectory"] = trajectory(ctx.dataset, scores)
    report["ripple"] = simulate_ripple(scores.resilience).model_dump()
    if disaster_id is not None:
        report["disaster"] = simulate_disaster(ctx.dataset, disaster_id, scores).model_dump()
    if levers is not None:
        report["policy"] = simulate_policy(scores, levers).model_dump()
    return report


def _print_human(report: dict[str, Any]) -> None:
    scores = report["scores"]
    status = report["status"]
    print(f"Country:     {report['country']}")
    print(f"Sources:     economic={status['economic']}  air_quality={status['air_quality']}")
    print(f"Resilience:  {scores['resilience']}  ({report['category']['label']})")
    print(f"  environmental {scores['env_score']}  structural {scores['struct_score']}"
          f"  fragility {scores['fragility']}")
    bench = report["benchmark"]
    print(f"  vs global {bench['delta_vs_global']:+d}  vs regional {bench['delta_vs_regional']:+d}")

    print("\nTrajectory:")
    for m in report["trajectory"]["milestones"]:
        print(f"  {m['year']}  {m['score']:>3}  {m['category']}")

    if "disaster" in report:
        d = report["disaster"]
        print(f"\nDisaster: {d['scenario_name']}")
        print(f"  resilience {d['pre']['resilience']} → {d['post']['resilience']}"
              f"  ({d['category_after']})")
        print(f"  2050 {d['baseline_2050']} → {d['projected_2050']}  recovery: {d['recovery_rating']}")

    if "policy" in report:
        p = report["policy"]
        print("\nPolicy:")
        print(f"  resilience {p['before']['resilience']} → {p['after']['resilience']}"
              f"  ({p['resilience_delta']:+d})  recovery 2050: {p['recovery_2050']}")

    r = report["ripple"]
    print(f"\nRipple: global stability {r['global_baseline']} → {r['global_simulated']}"
          f"  regional impact {r['regional_impact_pct']}%")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    fetcher: IndicatorFetcher = OfflineFetcher() if args.offline else HttpIndicatorFetcher()
    try:
        ctx = asyncio.run(_load(args.country, fetcher))
    except UnknownCountryError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    if ctx is None:
        print("error: selection changed while loading", file=sys.stderr)
        return EXIT_USAGE

    report = build_report(ctx, levers=args.policy, disaster_id=args.disaster)
    if args.json:
        print(json.dumps(report, indent=2, ensure_ascii=False))
    else:
        _print_human(report)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
