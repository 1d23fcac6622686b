#!/usr/bin/env python3
"""
Report clips stuck in processing with no transcoding job id.

These are left behind when the API stops between marking a clip processing
and recording the provider's job id. With --fail they are marked failed so a
coach can see them and re-upload.
"""

import argparse
import asyncio
from datetime import timedelta

from kolla.config import Settings
from kolla.database import create_engine
from kolla.services import ClipRegistry
from kolla.storage import ObjectStore

FAIL_REASON = "Transcoding submission was interrupted"


async def main(minutes: int, fail: bool):
    settings = Settings.from_env()
    engine = create_engine(settings.database_url)
    registry = ClipRegistry(engine, ObjectStore(settings))

    try:
        stranded = await registry.list_stranded(older_than=timedelta(minutes=minutes))
        print(f"Found {len(stranded)} clips in processing without a job id for over {minutes} minutes")

        for clip in stranded:
            print(f"\nClip {clip['id']} (team {clip['team_id']}, event {clip['event_id']})")
            print(f"  Original: {clip['storage_key']}")
            print(f"  Last updated: {clip['updated_at'].isoformat()}")

            if fail:
                await registry.mark_failed(clip['id'], FAIL_REASON)
                print("  Marked failed")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--minutes", type=int, default=30, help="Minimum age in processing")
    parser.add_argument("--fail", action="store_true", help="Mark stranded clips failed")
    args = parser.parse_args()
    asyncio.run(main(args.minutes, args.fail))
