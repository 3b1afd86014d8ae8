"""
Create the admin account, or reset its password if it already exists.

    python scripts/reset_admin_password.py --email admin@example.com --password 'new-secret'

Exit codes: 0 ok, 1 bad usage, 3 failure.
"""
import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.abspath(os.path.join(current_dir, ".."))
sys.path.insert(0, project_root)
load_dotenv(os.path.join(project_root, ".env"))

from sqlalchemy import select  # noqa: E402

from mindcare.config import settings  # noqa: E402
from mindcare.db import SessionLocal, engine, init_models  # noqa: E402
from mindcare.logging import setup_logging, get_logger  # noqa: E402
from mindcare.models import User  # noqa: E402
from mindcare.services.accounts import DEFAULT_ADMIN_PERMISSIONS  # noqa: E402
from mindcare.services.auth_service import hash_password  # noqa: E402

EXIT_USAGE = 1
EXIT_FAILURE = 3
MIN_PASSWORD_LENGTH = 8

logger = get_logger("mindcare.scripts.reset_admin_password")


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        print(f"error: {message}", file=sys.stderr)
        sys.exit(EXIT_USAGE)


async def reset_admin_password(email: str, password: str) -> str:
    """Returns "created" or "updated"."""
    if settings.AUTO_CREATE_TABLES:
        await init_models()

    email = email.lower()
    async with SessionLocal() as session:
        res = await session.execute(select(User).where(User.email == email))
        user = res.scalar_one_or_none()
        if user is not None and user.role != "admin":
            raise ValueError(f"{email} belongs to a {user.role} account")

        if user is None:
            session.add(User(
                email=email,
                password_hash=hash_password(password),
                role="admin",
                first_name="Admin",
                last_name="User",
                permissions=list(DEFAULT_ADMIN_PERMISSIONS),
                is_active=True,
            ))
            outcome = "created"
        else:
            user.password_hash = hash_password(password)
            user.is_active = True
            outcome = "updated"
        await session.commit()
    return outcome


async def main(argv=None) -> int:
    parser = _Parser(description="Create or reset the admin account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    args = parser.parse_args(argv)

    if len(args.password) < MIN_PASSWORD_LENGTH:
        parser.error(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

    setup_logging(debug=settings.is_development, level=settings.LOG_LEVEL)
    try:
        outcome = await reset_admin_password(args.email, args.password)
    except Exception as e:
        logger.error("admin_password_reset_failed", error=str(e), error_type=type(e).__name__)
        return EXIT_FAILURE
    finally:
        await engine.dispose()

    logger.info("admin_password_reset", email=args.email.lower(), outcome=outcome)
    print(f"Admin {args.email.lower()} {outcome}.")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
