#!/usr/bin/env python3
"""
Example: Delivery Tracking
Starts a tracking request, polls the (mock) carrier until a status is
available, then turns the status into display data.
"""
import asyncio
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import quote

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from polling_manager import JobState, PollingServiceManager, PollResult

# --- Mock carrier API ---

async def initiate_tracking(package_id: str) -> str:
    print(f"Initiating tracking for package {package_id}")
    await asyncio.sleep(0.1)
    return f"tracking-{package_id}"


async def check_delivery_status(tracking_id: str) -> PollResult:
    print(f"Checking status for tracking ID {tracking_id}")
    await asyncio.sleep(0.1)
    if random.random() > 0.7:
        return PollResult(
            done=True,
            result={
                "status": "In Transit",
                "location": "Distribution Center",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
    return PollResult(done=False)


async def prepare_delivery_data(status: dict) -> dict:
    print(f"Preparing display data for status: {status}")
    return {
        "formatted_status": f"Package is {status['status'].lower()}",
        "estimated_arrival": (datetime.now() + timedelta(days=1)).date().isoformat(),
        "location_map": f"https://maps.example.com?q={quote(status['location'])}",
    }


async def main():
    package_id = "PKG12345"

    async with PollingServiceManager(polling_interval=2.0, max_retry_attempts=5) as manager:
        job_id = manager.start(
            lambda: initiate_tracking(package_id),
            check_delivery_status,
            prepare_delivery_data,
            on_success=lambda data: print(f"Updating UI with delivery data: {data}"),
            on_error=lambda error: print(f"Failed to track package {package_id}: {error}"),
        )
        print(f"Started delivery tracking job with ID: {job_id}")

        await asyncio.sleep(5)
        print(f"Job {job_id} current state: {manager.get_state(job_id).value}")

        state = await manager.wait(job_id)
        if state is JobState.COMPLETED:
            print(f"Job {job_id} completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
