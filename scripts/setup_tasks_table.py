# =============================================================================
# scripts/setup_tasks_table.py
# Creates / checks the remote tasks table in Supabase
# =============================================================================
"""
The remote collection is one flat table keyed by task id whose columns are
exactly the document fields {title, description, isCompleted, createdAt,
updatedAt, userId}.

Option 1: Generate SQL only (copy to Supabase SQL Editor)
    python scripts/setup_tasks_table.py --sql-only

Option 2: Check that the table is reachable with the configured credentials
    python scripts/setup_tasks_table.py --check
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from task_core.config import load_settings
from task_core.errors import ConfigurationError
from task_core.offline.remote_store import SupabaseDocumentStore


def build_create_table_sql(table: str) -> str:
    return f"""
-- ============================================================================
-- TASKS TABLE (remote document collection)
-- ============================================================================

CREATE TABLE IF NOT EXISTS {table} (
    id TEXT PRIMARY KEY,
    "title" TEXT NOT NULL,
    "description" TEXT,
    "isCompleted" BOOLEAN NOT NULL DEFAULT FALSE,
    "createdAt" TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
    "updatedAt" TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
    "userId" TEXT NOT NULL
);

-- Pull queries filter by owner
CREATE INDEX IF NOT EXISTS idx_{table}_user ON {table}("userId");

-- Enable Row Level Security (RLS): a row is only visible to its owner
ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;

CREATE POLICY "Owners manage their tasks"
ON {table}
FOR ALL
USING (auth.uid()::text = "userId")
WITH CHECK (auth.uid()::text = "userId");

GRANT ALL ON {table} TO authenticated;

SELECT 'Table {table} created successfully!' AS status;
"""


def print_sql(table: str) -> None:
    """Print the SQL for manual execution in Supabase SQL Editor."""
    print("=" * 70)
    print(f" SQL TO CREATE {table.upper()} TABLE")
    print(" Copy this SQL and run it in Supabase SQL Editor")
    print("=" * 70)
    print(build_create_table_sql(table))
    print("=" * 70)


def check_table(table_override=None) -> int:
    """Try a small read against the configured table."""
    try:
        settings = load_settings()
        remote = SupabaseDocumentStore.from_settings(settings)
        if table_override:
            remote.table_name = table_override
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        print("Set SUPABASE_URL and SUPABASE_KEY (or .streamlit/secrets.toml).")
        return 1

    print(f"Connecting to Supabase table '{remote.table_name}'...")
    try:
        response = remote.client.table(remote.table_name).select("id").limit(1).execute()
    except Exception as e:
        if "does not exist" in str(e).lower() or "404" in str(e):
            print(f"Table '{remote.table_name}' does not exist yet.")
            print("Run the SQL below in the Supabase SQL Editor:")
            print_sql(remote.table_name)
        else:
            print(f"Table check failed: {e}")
        return 1

    print(f"Table reachable ({len(response.data)} sample rows).")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or check the remote tasks table")
    parser.add_argument("--sql-only", action="store_true", help="Print the CREATE TABLE SQL")
    parser.add_argument("--check", action="store_true", help="Check the table is reachable")
    parser.add_argument("--table", default=None, help="Table name (default: TASKS_TABLE or 'tasks')")
    parser.add_argument("--output", default=None, help="Also write the SQL to this file")
    args = parser.parse_args()

    if args.check:
        return check_table(args.table)

    table = args.table
    if table is None:
        try:
            table = load_settings().tasks_table
        except ConfigurationError:
            table = "tasks"
    print_sql(table)

    if args.output:
        Path(args.output).write_text(build_create_table_sql(table), encoding="utf-8")
        print(f"\nSQL also saved to: {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
