from dataclasses import asdict
from datetime import date
from typing import Optional, List, Dict, Any, Tuple
from psycopg import Connection
from decimal import Decimal

from ..services.calculator import HeaderTotals

ORDER_COLUMNS = """
    id, kind, order_no, party_id, warehouse_id, order_date, due_date, currency,
    additional_discount, expense, status, payment_status,
    subtotal, total_tax, grand_total, locked_at, created_at
"""

# Builds the next document number for a kind within the order's month,
# e.g. PO-202510-0007 for purchases and SO-202510-0007 for sales.
# Numbering continues from the highest suffix in use, so deleted drafts never
# free a number that a later order still holds.
def next_order_no(conn: Connection, kind: str, order_date: date) -> str:
    code = "PO" if kind == "PURCHASE" else "SO"
    prefix = f"{code}-{order_date.strftime('%Y%m')}-"
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT max(substring(order_no from '[0-9]+$')::int) FROM orders
            WHERE kind = %s AND order_no ~ %s
            """,
            (kind, f"^{prefix}[0-9]+$"),
        )
        (last,) = cur.fetchone()
    return f"{prefix}{(last or 0) + 1:04d}"

# Inserts a new draft order with the totals computed at creation time.
def insert_order(conn: Connection, org_id: str, payload: dict, totals: HeaderTotals) -> str:
    sql = """
    INSERT INTO orders
      (id, org_id, kind, order_no, party_id, warehouse_id, order_date, due_date,
       currency, additional_discount, expense, status, payment_status,
       subtotal, total_tax, grand_total, created_at)
    VALUES
      (gen_random_uuid(), %(org_id)s, %(kind)s, %(order_no)s, %(party_id)s, %(warehouse_id)s,
       %(order_date)s, %(due_date)s, %(currency)s, %(additional_discount)s, %(expense)s,
       'DRAFT', 'UNPAID', %(subtotal)s, %(total_tax)s, %(grand_total)s, now())
    RETURNING id;
    """
    with conn.cursor() as cur:
        cur.execute(sql, {
          "org_id": org_id,
          "kind": payload["kind"],
          "order_no": payload["order_no"],
          "party_id": payload["party_id"],
          "warehouse_id": payload.get("warehouse_id"),
          "order_date": payload["order_date"],
          "due_date": payload.get("due_date"),
          "currency": payload["currency"],
          "additional_discount": Decimal(payload["additional_discount"]),
          "expense": Decimal(payload["expense"]),
          "subtotal": totals.subtotal,
          "total_tax": totals.total_tax,
          "grand_total": totals.grand_total,
        })
        return str(cur.fetchone()[0])

# Replaces all lines of an order. Each line dict carries the request fields
# plus its rounded derived figures (subtotal, taxable_base, tax, total).
def replace_lines(conn: Connection, order_id: str, lines: list[dict]) -> None:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM order_lines WHERE order_id = %(id)s", {"id": order_id})
        cur.executemany("""
            INSERT INTO order_lines
              (id, order_id, position, item_id, sku, "desc", qty, unit_price, tax_percentage,
               discount, subtotal, taxable_base, tax, total)
            VALUES
              (gen_random_uuid(), %(order_id)s, %(position)s, %(item_id)s, %(sku)s, %(desc)s, %(qty)s,
               %(unit_price)s, %(tax_percentage)s, %(discount)s, %(subtotal)s, %(taxable_base)s,
               %(tax)s, %(total)s)
        """, [{"order_id": order_id, "position": pos, **ln} for pos, ln in enumerate(lines)])


# Lists orders for the current org context with pagination.
# LIMIT = page size; OFFSET = start index
def list_orders(
    conn: Connection,
    limit: int = 50,
    offset: int = 0,
    kind: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    where = []
    params: List[Any] = []
    if kind:
        where.append("kind = %s")
        params.append(kind)
    if status:
        where.append("status = %s")
        params.append(status)
    clause = f"WHERE {' AND '.join(where)}" if where else ""
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT {ORDER_COLUMNS},
                   (SELECT count(*) FROM order_lines ol WHERE ol.order_id = orders.id) AS lines_count
            FROM orders
            {clause}
            ORDER BY order_date DESC, created_at DESC
            LIMIT %s OFFSET %s
            """,
            (*params, limit, offset),
        )
        columns = [col[0] for col in cur.description] # DB metadata
        return [dict(zip(columns, row)) for row in cur.fetchall()]


# Fetches a single order and its lines in insertion order. Returns None if not found.
def get_order_with_lines(conn: Connection, order_id: str) -> Optional[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(
            f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = %s",
            (order_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        columns = [c[0] for c in cur.description]
        order = dict(zip(columns, row))

        cur.execute(
            """
            SELECT id, item_id, sku, "desc", qty, unit_price, tax_percentage, discount,
                   subtotal, taxable_base, tax, total
            FROM order_lines WHERE order_id = %s ORDER BY position
            """,
            (order_id,),
        )
        line_cols = [c[0] for c in cur.description]
        order["lines"] = [dict(zip(line_cols, r)) for r in cur.fetchall()]
        return order


# Partially updates order scalar fields. `fields` is a dict of column -> value.
# Returns True if a row was updated, False if no such order exists.
def update_order_fields(conn: Connection, order_id: str, fields: Dict[str, Any]) -> bool:
    if not fields:
        return True  # nothing to do; treat as success
    allowed = {
        "order_no", "party_id", "warehouse_id", "order_date", "due_date", "currency",
        "additional_discount", "expense", "status", "payment_status",
    }
    assignments = []
    values = []
    for k, v in fields.items():
        if k in allowed:
            assignments.append(f"{k} = %s")
            values.append(v)
    if not assignments:
        return True
    sql_stmt = f"UPDATE orders SET {', '.join(assignments)} WHERE id = %s"
    with conn.cursor() as cur:
        cur.execute(sql_stmt, (*values, order_id))
        return cur.rowcount > 0


# Stores freshly computed totals on a draft. Locked orders are left untouched.
def store_totals(conn: Connection, order_id: str, totals: HeaderTotals) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE orders
            SET subtotal = %(subtotal)s, total_tax = %(total_tax)s, grand_total = %(grand_total)s
            WHERE id = %(id)s AND locked_at IS NULL
            """,
            {**_totals_params(totals), "id": order_id},
        )
        return cur.rowcount > 0


# Writes the authoritative totals and moves the order to ACTIVE in one statement.
# The locked_at guard makes a second finalize a no-op.
def lock_totals(conn: Connection, order_id: str, totals: HeaderTotals) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE orders
            SET subtotal = %(subtotal)s, total_tax = %(total_tax)s, grand_total = %(grand_total)s,
                status = 'ACTIVE', locked_at = now()
            WHERE id = %(id)s AND status = 'DRAFT' AND locked_at IS NULL
            """,
            {**_totals_params(totals), "id": order_id},
        )
        return cur.rowcount > 0


def _totals_params(totals: HeaderTotals) -> Dict[str, Any]:
    data = asdict(totals)
    return {k: data[k] for k in ("subtotal", "total_tax", "grand_total")}


def set_status(conn: Connection, order_id: str, status: str) -> bool:
    return update_order_fields(conn, order_id, {"status": status})


def set_payment_status(conn: Connection, order_id: str, payment_status: str) -> bool:
    return update_order_fields(conn, order_id, {"payment_status": payment_status})


def insert_payment(conn: Connection, order_id: str, amount: Decimal, paid_at: Optional[date], note: Optional[str]) -> str:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO order_payments (id, order_id, amount, paid_at, note, created_at)
            VALUES (gen_random_uuid(), %s, %s, COALESCE(%s, current_date), %s, now())
            RETURNING id
            """,
            (order_id, amount, paid_at, note),
        )
        return str(cur.fetchone()[0])


def insert_return(conn: Connection, order_id: str, amount: Decimal, returned_at: Optional[date], note: Optional[str]) -> str:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO order_returns (id, order_id, amount, returned_at, note, created_at)
            VALUES (gen_random_uuid(), %s, %s, COALESCE(%s, current_date), %s, now())
            RETURNING id
            """,
            (order_id, amount, returned_at, note),
        )
        return str(cur.fetchone()[0])


# Cumulative (total_paid, total_return) recorded against an order.
def get_settlement_sums(conn: Connection, order_id: str) -> Tuple[Decimal, Decimal]:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT
              (SELECT COALESCE(SUM(amount), 0) FROM order_payments WHERE order_id = %(id)s),
              (SELECT COALESCE(SUM(amount), 0) FROM order_returns WHERE order_id = %(id)s)
            """,
            {"id": order_id},
        )
        paid, returned = cur.fetchone()
        return Decimal(paid), Decimal(returned)


# Deletes a draft order; lines cascade. Returns False when nothing was deleted.
def delete_order(conn: Connection, order_id: str) -> bool:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM orders WHERE id = %s AND status = 'DRAFT'", (order_id,))
        return cur.rowcount > 0
