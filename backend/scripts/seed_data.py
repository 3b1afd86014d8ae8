"""Demo accounts for local development (one verified therapist, one client)."""
import asyncio
import os
import sys

current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.abspath(os.path.join(current_dir, "..")))

from mindcare.db import SessionLocal, engine, init_models  # noqa: E402
from mindcare.services.accounts import EmailTaken, create_account  # noqa: E402

DEMO_PASSWORD = "password123"

THERAPIST = {
    "email": "therapist1@example.com",
    "password": DEMO_PASSWORD,
    "first_name": "Dana",
    "last_name": "Reyes",
}
THERAPIST_PROFILE = {
    "license_number": "LIC-0001",
    "specializations": ["anxiety", "depression"],
    "languages": ["English", "Spanish"],
    "education": [{"degree": "PsyD", "institution": "State University", "year": 2012}],
    "experience": 10,
    "bio": "Licensed clinical psychologist focusing on anxiety, low mood and life transitions.",
    "hourly_rate": 90,
}
CLIENT = {
    "email": "user1@example.com",
    "password": DEMO_PASSWORD,
    "first_name": "Sam",
    "last_name": "Park",
}


async def seed_data():
    await init_models()
    async with SessionLocal() as session:
        try:
            therapist = await create_account(session, "therapist", THERAPIST, THERAPIST_PROFILE)
            therapist.therapist_profile.is_verified = True
            await session.commit()
        except EmailTaken:
            print(f"{THERAPIST['email']} already exists, skipped")
        try:
            await create_account(session, "user", CLIENT)
        except EmailTaken:
            print(f"{CLIENT['email']} already exists, skipped")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_data())
