from typing import List, Dict, Any, Optional
from psycopg import Connection

# Vendors and customers share one shape; the table name is never user input.
PARTY_TABLES = {"vendor": "vendors", "customer": "customers"}

def _table(kind: str) -> str:
    try:
        return PARTY_TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown party kind: {kind!r}")

# Lists vendors or customers for the current org context with pagination.
# Org scoping is enforced via RLS using app.org_id GUC.
def list_parties(
    conn: Connection,
    kind: str,
    limit: int = 100,
    offset: int = 0,
    active_only: bool = False,
) -> List[Dict[str, Any]]:
    clause = "WHERE is_active" if active_only else ""
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT id::text AS id, name, address, is_active
            FROM {_table(kind)}
            {clause}
            ORDER BY name ASC
            LIMIT %s OFFSET %s
            """,
            (limit, offset),
        )
        columns = [c[0] for c in cur.description]
        return [dict(zip(columns, row)) for row in cur.fetchall()]

# Fetches a single vendor or customer by ID. Returns None if not found.
def get_party(conn: Connection, kind: str, party_id: str) -> Optional[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT id::text AS id, name, address, is_active
            FROM {_table(kind)}
            WHERE id = %s
            """,
            (party_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        columns = [c[0] for c in cur.description]
        return dict(zip(columns, row))
