from __future__ import annotations

import argparse
import asyncio
import sys

from deploytrack.domain.models import ApiKey
from deploytrack.persistence.db import SessionLocal
from deploytrack.persistence.repos import accounts as accounts_repo
from deploytrack.services.auth.api_keys import generate_api_key, normalize_role


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create an API key for a DeployTrack account")
    parser.add_argument("--email", required=True, help="Account email")
    parser.add_argument("--name", required=True, help="Key label")
    parser.add_argument("--user-id", default=None, help="Identity-provider user id for a new account")
    parser.add_argument("--role", default=None, help="Role for a new account: technician|admin")
    parser.add_argument("--display-name", default=None, help="Display name for a new account")
    return parser


async def _create_key(args: argparse.Namespace) -> int:
    key_id, raw_key, key_prefix, key_hash = generate_api_key()

    async with SessionLocal() as session:
        account = await accounts_repo.get_account_by_email(session, email=args.email)
        if account is None:
            # New accounts must carry the id the identity provider issued for them.
            if not args.user_id or not args.role:
                raise ValueError("--user-id and --role are required when the account does not exist")
            account = await accounts_repo.upsert_account_by_email(
                session,
                user_id=args.user_id,
                email=args.email,
                name=args.display_name or args.email,
                role=normalize_role(args.role),
            )
        elif args.role and normalize_role(args.role) != account.role:
            account.role = normalize_role(args.role)
        await session.flush()

        session.add(
            ApiKey(
                id=key_id,
                user_id=account.user_id,
                key_prefix=key_prefix,
                key_hash=key_hash,
                name=args.name,
            )
        )
        await session.commit()

    print("API key created:")
    print(f"  key_id: {key_id}")
    print(f"  key_prefix: {key_prefix}")
    print("  api_key: ")
    print(f"    {raw_key}")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_create_key(args))
    except Exception as exc:  # noqa: BLE001 - surface provisioning failures clearly
        print(f"create_api_key failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
