#!/usr/bin/env python3
"""Fire concurrent, shuffled progress heartbeats and print the result.

RUN:  python scripts/concurrent_heartbeats.py

By default the app runs in-process (httpx ASGI transport) against the
seeded in-memory catalog, and a token is minted with the dev key.

To hit a running instance instead:

  BASE_URL=http://localhost:8000 ACCESS_TOKEN=... LESSON_ID=... \\
      python scripts/concurrent_heartbeats.py

Every report is sent at once in random order, with duplicates.  The
stored position should equal the largest position sent, and the lesson
should be completed exactly once regardless of arrival order.
"""

from __future__ import annotations

import asyncio
import os
import random
import sys
from pathlib import Path

import httpx

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DURATION = 120.0
POSITIONS = [float(p) for p in range(0, 121, 6)]
DUPLICATES = 3


def _client() -> tuple[httpx.AsyncClient, str, str]:
    base_url = os.environ.get("BASE_URL")
    if base_url:
        token = os.environ.get("ACCESS_TOKEN", "")
        lesson_id = os.environ.get("LESSON_ID", "")
        if not token or not lesson_id:
            print("ACCESS_TOKEN and LESSON_ID are required with BASE_URL")
            sys.exit(1)
        return httpx.AsyncClient(base_url=base_url, timeout=10), token, lesson_id

    from app.api.dependencies import DEMO_USER_ID
    from app.main import app
    from app.services import token_service

    token = token_service.create_access_token(sub=str(DEMO_USER_ID))
    lesson_id = "00000000-0000-0000-0000-000000000102"  # 120s demo lesson
    transport = httpx.ASGITransport(app=app)
    client = httpx.AsyncClient(transport=transport, base_url="http://in-process")
    return client, token, lesson_id


async def main() -> None:
    client, token, lesson_id = _client()
    headers = {"Authorization": f"Bearer {token}"}
    url = f"/lessons/{lesson_id}/progress"

    reports = POSITIONS * DUPLICATES
    random.shuffle(reports)

    print("Concurrent heartbeat test")
    print("=" * 50)
    print(f"Target: {url}")
    print(f"Reports: {len(reports)} ({len(POSITIONS)} positions x{DUPLICATES})")
    print()

    async with client:
        responses = await asyncio.gather(
            *(
                client.post(
                    url,
                    json={
                        "currentTimeSeconds": position,
                        "durationSeconds": DURATION,
                        "completionPercentage": 0,
                        "isCompleted": False,
                    },
                    headers=headers,
                )
                for position in reports
            )
        )
        statuses: dict[int, int] = {}
        for resp in responses:
            statuses[resp.status_code] = statuses.get(resp.status_code, 0) + 1

        final = await client.get(url, headers=headers)

    print("Status codes:")
    for code, count in sorted(statuses.items()):
        print(f"  {code}: {count:>4}")
    print()

    if final.status_code != 200:
        print(f"GET progress failed: {final.status_code} {final.text}")
        sys.exit(1)

    body = final.json()
    print("Converged record:")
    for key in (
        "currentTimeSeconds",
        "completionPercentage",
        "isCompleted",
        "completedAt",
    ):
        print(f"  {key:<22} {body[key]}")
    print()

    expected = max(reports)
    if body["currentTimeSeconds"] == expected and body["isCompleted"]:
        print(f"OK: position converged to the maximum ({expected}).")
    else:
        print(f"MISMATCH: expected position {expected} and completion.")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
