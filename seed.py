"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - the ``emailDomains`` configuration document
  - 4 sample users
  - 2 open trips departing tomorrow, one with a pending pairing request
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from peerride.config import settings
from peerride.domain.entities import Luggage
from peerride.domain.enums import ContactMethod, PairRequestStatus, TripStatus
from peerride.infrastructure.database import async_session_factory, engine
from peerride.infrastructure.models import PairRequestModel, TripModel, UserModel
from peerride.infrastructure.repositories import ConfigRepository

ALLOWED_DOMAINS = ["stanford.edu", "berkeley.edu"]

USERS = [
    {"id": "seed-host-1", "email": "maya@stanford.edu", "display_name": "Maya"},
    {"id": "seed-host-2", "email": "leo@berkeley.edu", "display_name": "Leo"},
    {"id": "seed-rider-1", "email": "sam@stanford.edu", "display_name": "Sam"},
    {"id": "seed-rider-2", "email": "ines@berkeley.edu", "display_name": "Ines"},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(select(func.count()).select_from(UserModel))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        await ConfigRepository(session).put_document(
            settings.allowed_domains_config_key, {"domains": ALLOWED_DOMAINS}
        )
        print(f"  Allowed signup domains: {', '.join(ALLOWED_DOMAINS)}")

        for u in USERS:
            session.add(UserModel(**u))
        await session.flush()
        print(f"  Created {len(USERS)} users")

        tomorrow = datetime.now(timezone.utc).replace(
            minute=0, second=0, microsecond=0
        ) + timedelta(days=1)

        sfo = TripModel(
            host_id="seed-host-1",
            host_nickname="Maya",
            origin_id="stanford",
            origin_name="Stanford Campus",
            destination_id="sfo",
            destination_name="SFO",
            departure_start=tomorrow,
            departure_end=tomorrow + timedelta(hours=2),
            luggage=Luggage(carry_on_small=1, checked_large=1).as_dict(),
            host_contact_method=ContactMethod.CHAT,
            status=TripStatus.OPEN,
        )
        oak = TripModel(
            host_id="seed-host-2",
            host_nickname="Leo",
            origin_id="berkeley",
            origin_name="UC Berkeley",
            destination_id="oak",
            destination_name="OAK",
            departure_start=tomorrow + timedelta(hours=6),
            departure_end=tomorrow + timedelta(hours=8),
            luggage=Luggage(carry_on_large=1).as_dict(),
            host_contact_method=ContactMethod.PHONE,
            host_contact_value="+1 510 555 0100",
            status=TripStatus.OPEN,
        )
        session.add_all([sfo, oak])
        await session.flush()
        print("  Created 2 trips")

        session.add(
            PairRequestModel(
                trip_id=sfo.id,
                host_id=sfo.host_id,
                host_nickname=sfo.host_nickname,
                requester_id="seed-rider-1",
                requester_name="Sam",
                luggage=Luggage(carry_on_small=1).as_dict(),
                note="Happy to split the fare.",
                status=PairRequestStatus.PENDING,
            )
        )
        await session.flush()
        print("  Created 1 pairing request")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
