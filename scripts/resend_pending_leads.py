#!/usr/bin/env python3
"""
Resend Pending Leads Script

Re-triggers delivery for leads that have an assigned provider but are still
delivery_status = pending. That state is what an interrupted assignment leaves
behind (the provider was set, the email never went out).

Leads held pending for an unverified provider are included in the listing but
are skipped unless --include-held is given.

Usage:
    python resend_pending_leads.py --dry-run
    python resend_pending_leads.py --limit 50
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.lead_repository import list_undelivered_assigned_leads
from services.lead_delivery_service import deliver_lead

HELD_REASONS = ("Verification required.", "Provider unclaimed (escrow).")


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Re-trigger delivery for assigned leads stuck in pending",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List what would be resent
  python resend_pending_leads.py --dry-run

  # Resend up to 50 leads
  python resend_pending_leads.py --limit 50
        """
    )

    parser.add_argument(
        "--limit",
        "-l",
        type=int,
        default=100,
        help="Maximum number of leads to process (default: 100)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List leads without sending"
    )

    parser.add_argument(
        "--include-held",
        action="store_true",
        help="Also resend leads held for an unverified provider"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        print("Fetching pending assigned leads...")
        leads = list_undelivered_assigned_leads(limit=args.limit)

        if not leads:
            print("No pending assigned leads found")
            return 0

        delivered = 0
        failed = 0
        skipped = 0

        for lead in leads:
            if not args.include_held and lead.delivery_error in HELD_REASONS:
                skipped += 1
                print(f"  - {lead.lead_id}: held ({lead.delivery_error})")
                continue

            if args.dry_run:
                print(f"  - {lead.lead_id}: would resend to provider {lead.provider_id}")
                continue

            result = deliver_lead(lead.lead_id)
            if result.ok:
                delivered += 1
                print(f"  ✓ {lead.lead_id}: {result.message}")
            else:
                failed += 1
                print(f"  ✗ {lead.lead_id}: {result.message}")

        print()
        print("=" * 60)
        print("RESEND SUMMARY")
        print("=" * 60)
        print(f"Pending leads found: {len(leads)}")
        print(f"  Delivered: {delivered}")
        print(f"  Failed:    {failed}")
        print(f"  Held:      {skipped}")
        print("=" * 60)

        return 0 if failed == 0 else 1

    except KeyboardInterrupt:
        print("\n\nResend interrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
