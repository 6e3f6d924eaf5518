"""
Reopen the exit survey for one student by clearing their submitted flag.

Usage:
  RESET_ROLLNO=23CT001 python reset_submission.py

Counters already applied by the earlier submission are left as they are.
"""

import os

from dotenv import load_dotenv

from db import PostgresStore, get_database_url


def main():
    load_dotenv()
    database_url = get_database_url()
    roll_no = (os.getenv("RESET_ROLLNO") or "").strip().upper()

    if not roll_no:
        raise RuntimeError("RESET_ROLLNO is required.")

    updated = PostgresStore(database_url).clear_submitted(roll_no)

    if updated:
        print(f"Feedback reopened for {roll_no}.")
    else:
        print(f"No student found for {roll_no}.")
    return updated


if __name__ == "__main__":
    main()
