"""
Read-only sanity checks against a live database.

Reports students whose raw balance went negative, saving schedules whose
day does not match their frequency and rows pointing at deleted students
or profiles. Uses DATABASE_URL_PROD_CLI from the environment or `.env`.
"""
import asyncio
import os
import sys

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

CHECKS = {
    "Negative balances": """
        SELECT s.nisn, s.name,
               SUM(CASE WHEN t.type = 'deposit' THEN t.amount ELSE -t.amount END) AS balance
        FROM students s
        JOIN transactions t ON t.student_id = s.id
        GROUP BY s.id, s.nisn, s.name
        HAVING SUM(CASE WHEN t.type = 'deposit' THEN t.amount ELSE -t.amount END) < 0
    """,
    "Weekly schedules without a day": """
        SELECT id, student_id FROM saving_schedules
        WHERE frequency = 'weekly' AND (day_of_week IS NULL OR day_of_week = '')
    """,
    "Non-weekly schedules with a day": """
        SELECT id, student_id, frequency FROM saving_schedules
        WHERE frequency <> 'weekly' AND day_of_week IS NOT NULL AND day_of_week <> ''
    """,
    "Orphaned transactions": """
        SELECT t.id, t.student_id FROM transactions t
        LEFT JOIN students s ON t.student_id = s.id
        WHERE s.id IS NULL
    """,
    "Orphaned saving schedules": """
        SELECT ss.id, ss.student_id FROM saving_schedules ss
        LEFT JOIN students s ON ss.student_id = s.id
        WHERE s.id IS NULL
    """,
    "Students with a missing teacher or parent": """
        SELECT s.nisn, s.name FROM students s
        LEFT JOIN profiles teacher ON s.teacher_id = teacher.id
        LEFT JOIN profiles parent ON s.parent_id = parent.id
        WHERE (s.teacher_id IS NOT NULL AND teacher.id IS NULL)
           OR (s.parent_id IS NOT NULL AND parent.id IS NULL)
    """,
}


async def check_integrity(db_url: str) -> int:
    print("Connecting to database...")
    engine = create_async_engine(db_url)
    problems = 0
    try:
        async with engine.connect() as conn:
            for label, query in CHECKS.items():
                rows = (await conn.execute(text(query))).all()
                status = "OK" if not rows else f"{len(rows)} found"
                print(f"[{status}] {label}")
                for row in rows:
                    print(f"    {tuple(row)}")
                problems += len(rows)
    finally:
        await engine.dispose()
    return problems


def main():
    load_dotenv()
    db_url = os.getenv("DATABASE_URL_PROD_CLI")
    if not db_url:
        print("Error: DATABASE_URL_PROD_CLI not set.")
        sys.exit(1)

    problems = asyncio.run(check_integrity(db_url))
    if problems:
        print(f"\nIntegrity check finished with {problems} problem(s).")
        sys.exit(1)
    print("\nIntegrity check passed.")


if __name__ == "__main__":
    main()
