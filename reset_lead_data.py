#!/usr/bin/env python3
"""Reset the sales pipeline in the local database.

Keeps users, team members and businesses intact. Removes:
  - All leads
  - All lead activities

Usage:
    python3 reset_lead_data.py
    python3 reset_lead_data.py --yes   (skip confirmation prompt)
"""

import sys
import os

# Ensure we can import the app
sys.path.insert(0, os.path.dirname(__file__))

# Load .env
from dotenv import load_dotenv
load_dotenv()


def reset():
    from leadpipe import create_app
    from leadpipe.extensions import db
    from leadpipe.models.lead import Lead
    from leadpipe.models.lead_activity import LeadActivity

    app = create_app("development")

    with app.app_context():
        lead_count = Lead.query.count()
        activity_count = LeadActivity.query.count()

        print(f"\n  Data to be DELETED:")
        print(f"    - {lead_count} lead(s)")
        print(f"    - {activity_count} lead activit{'y' if activity_count == 1 else 'ies'}")
        print()

        if "--yes" not in sys.argv:
            confirm = input("  Proceed? (type 'yes' to confirm): ")
            if confirm.strip().lower() != "yes":
                print("  Aborted.")
                return

        # Children first: bulk deletes skip the ORM cascade
        print("\n  Deleting...")

        n = LeadActivity.query.delete()
        print(f"    lead_activities: {n}")

        n = Lead.query.delete()
        print(f"    leads: {n}")

        db.session.commit()
        print("\n  Done! Pipeline cleared. Users, team and businesses preserved.\n")


if __name__ == "__main__":
    reset()
