# backend/dealmatch/cli/__main__.py
from __future__ import annotations

import argparse

from ..db import Base, engine
from .seed_demo import seed_demo


def main() -> None:
    p = argparse.ArgumentParser(prog="python -m dealmatch.cli")
    p.add_argument("--tenant-slug", default="demo")
    p.add_argument("--tenant-name", default="Demo Agency")
    p.add_argument("--user-email", default="agent@demo.local")
    p.add_argument("--user-name", default="Demo Agent")
    p.add_argument("--no-sample-deal", action="store_true")
    p.add_argument("--create-tables", action="store_true", help="create tables without alembic (local sqlite)")
    args = p.parse_args()

    if args.create_tables:
        Base.metadata.create_all(bind=engine)

    out = seed_demo(
        tenant_slug=args.tenant_slug,
        tenant_name=args.tenant_name,
        user_email=args.user_email,
        user_name=args.user_name,
        create_sample_deal=(not args.no_sample_deal),
    )
    print(
        {
            "ok": True,
            "tenant_id": out.tenant_id,
            "tenant_slug": out.tenant_slug,
            "user_email": out.user_email,
            "deal_id": out.deal_id,
            "property_ids": out.property_ids,
        }
    )


if __name__ == "__main__":
    main()
