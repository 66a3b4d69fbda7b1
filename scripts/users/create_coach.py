"""Provision a coach account by hand (support cases, comped plans).

Usage:
    ENV_FILE=.env.prod python scripts/users/create_coach.py coach@example.com "Marie Curie" --plan elite
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

project_root = Path(__file__).resolve().parents[2]

# Repository root on the path to import libs and services
sys.path.append(str(project_root))

from dotenv import load_dotenv

# Load env file selected for the run (defaults to .env.prod when ENV_FILE not set)
# MUST be done before importing libs that use get_settings()
env_file = os.environ.get("ENV_FILE", ".env.prod")
load_dotenv(project_root / env_file, override=True)

from libs.common.emails.client import get_email_client
from libs.common.errors import CoachingError
from libs.common.plan_limits import PLAN_LIMITS
from libs.remote.client import get_admin_client
from services.functions_service.services.coach_accounts import provision_coach_account


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or upgrade a BYW coach account.")
    parser.add_argument("email")
    parser.add_argument("name")
    parser.add_argument("--plan", choices=sorted(PLAN_LIMITS), default="warm_up")
    parser.add_argument(
        "--no-email",
        action="store_true",
        help="Do not send the welcome email (the temporary password is lost).",
    )
    return parser.parse_args(argv)


async def create_coach(args: argparse.Namespace) -> int:
    print(f"🚀 Provisioning coach {args.email} on plan {args.plan}")
    remote = await get_admin_client()
    email_client = None if args.no_email else get_email_client()
    try:
        account = await provision_coach_account(
            remote, email_client, email=args.email, name=args.name, plan=args.plan
        )
    except CoachingError as e:
        print(f"❌ Failed: {e}")
        return 1

    status = "created" if account.created else "updated"
    print(f"✅ Coach {status}: {account.user_id}")
    if account.created and not account.email_sent:
        print("⚠️ Welcome email not sent; reset the password from the dashboard.")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(create_coach(parse_args())))
