"""Script to seed the default subscription plans in the database."""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dompet.db.base import SessionLocal
from dompet.db.seed import seed_plans


def main():
    db = SessionLocal()
    try:
        created = seed_plans(db)
        if created:
            print(f"Seeded {len(created)} plan(s): {', '.join(p.name for p in created)}")
        else:
            print("All default plans already exist. Skipping seed.")
    except Exception as e:
        print(f"Error seeding plans: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
