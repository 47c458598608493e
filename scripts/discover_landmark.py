#!/usr/bin/env python3
"""Run one discovery from the command line (local image or text query) and print the result.

Usage:
  OPENAI_API_KEY=... python scripts/discover_landmark.py --image photos/louvre.jpg --locale en
  OPENAI_API_KEY=... python scripts/discover_landmark.py --query "Hagia Sophia" --expand --podcast
  python scripts/discover_landmark.py --query "Colosseum" --out result.md

Output: the final session view as JSON on stdout, or a markdown report with --out.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from landmark_guide.config import GuideConfig
from landmark_guide.export import render_report
from landmark_guide.gateway import BackendGateway
from landmark_guide.orchestrator import DiscoveryOrchestrator
from landmark_guide.session import Phase


async def _run(args: argparse.Namespace) -> int:
    config = GuideConfig.from_env()
    orch = DiscoveryOrchestrator(gateway=BackendGateway(config), config=config)
    orch.set_locale(args.locale or config.default_locale)
    try:
        if args.image:
            orch.upload(Path(args.image).read_bytes(), hint=args.query)
        else:
            orch.search(args.query or "")
        await orch.wait_idle()
        if orch.session.phase is Phase.PRESENTING:
            if args.expand:
                orch.expand()
            if args.podcast:
                orch.generate_podcast()
            await orch.wait_idle()
        view = orch.view()
        result = orch.session.current_result
        if args.out and result is not None:
            Path(args.out).write_text(render_report(result), encoding="utf-8")
            print(f"Wrote {args.out}", file=sys.stderr)
        else:
            print(json.dumps(view, ensure_ascii=False, indent=2))
        return 0 if orch.session.phase is Phase.PRESENTING else 1
    finally:
        await orch.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Identify a landmark from an image or a name")
    parser.add_argument("--image", type=str, default=None, help="Path to a JPEG/PNG photo")
    parser.add_argument("--query", type=str, default=None, help="Landmark name (or hint with --image)")
    parser.add_argument("--locale", type=str, default=None, help="ar, en, fr, tr, de, it")
    parser.add_argument("--expand", action="store_true", help="Also fetch the expanded history")
    parser.add_argument("--podcast", action="store_true", help="Also generate a podcast script")
    parser.add_argument("--out", type=str, default=None, help="Write a markdown report here")
    args = parser.parse_args()
    if not args.image and not (args.query or "").strip():
        parser.error("one of --image or --query is required")
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
