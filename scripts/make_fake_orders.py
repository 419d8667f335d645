#!/usr/bin/env python3
"""
make_fake_orders.py

Generate synthetic purchase/sales order payloads for OrderDesk.
- JSON payloads shaped like POST /orders bodies (party_id left for the loader)
- Optional CSV export of headers and lines for spreadsheet checks
- Edge cases: oversize line discounts, zero-tax lines, header discount larger
  than the document, fractional quantities

Requires:
  pip install faker

Usage examples:
  python scripts/make_fake_orders.py \
    --json data/samples/orders_json \
    --csv data/samples/orders_csv \
    --n 20

This script is deterministic per --seed to make debugging easier.
"""
from __future__ import annotations
import argparse
import csv
import json
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from random import Random
from typing import List

try:
    from faker import Faker
except ImportError:
    raise SystemExit("Please install 'faker' (pip install faker)")

from apps.orderdesk.services.calculator import OrderLine, calculate_header_totals
from apps.orderdesk.services.rounding import round_header_totals

TAX_RATES = [0, 10, 11, 12]

ITEM_POOL = [
    (101, "BRS-PRM-25", "Beras Premium 25kg", Decimal("310000")),
    (102, "MNY-GRG-2L", "Minyak Goreng 2L", Decimal("36500")),
    (103, "GLA-PSR-1K", "Gula Pasir 1kg", Decimal("17500")),
    (104, "TPG-TRG-1K", "Tepung Terigu 1kg", Decimal("12800")),
    (105, "KBL-NYM-50", "Kabel NYM 2x1.5 50m", Decimal("455000")),
    (106, "CAT-TMB-5K", "Cat Tembok 5kg", Decimal("128000")),
    (107, "SMN-50K", "Semen 50kg", Decimal("68000")),
    (108, "PPA-PVC-4M", "Pipa PVC 3/4\" 4m", Decimal("42500")),
]


@dataclass
class FakeLine:
    item_id: int
    sku: str
    desc: str
    qty: Decimal
    unit_price: Decimal
    tax_percentage: Decimal
    discount: Decimal


@dataclass
class FakeOrder:
    kind: str
    order_date: str  # ISO yyyy-mm-dd
    due_date: str
    currency: str
    additional_discount: Decimal
    expense: Decimal
    lines: List[FakeLine] = field(default_factory=list)


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def random_line(rng: Random) -> FakeLine:
    item_id, sku, desc, base = rng.choice(ITEM_POOL)
    # bulk goods are sometimes sold by fractional units
    qty = Decimal(rng.randint(1, 40)) if rng.random() > 0.15 else Decimal(f"{rng.uniform(0.5, 9.5):.2f}")
    unit_price = (base * Decimal(f"{0.9 + rng.random() * 0.25:.4f}")).quantize(Decimal("1"))
    discount = Decimal("0")
    if rng.random() < 0.35:
        discount = (unit_price * qty * Decimal(f"{rng.uniform(0.02, 0.2):.4f}")).quantize(Decimal("1"))
    if rng.random() < 0.05:
        # oversize discount: taxable base clamps to zero
        discount = (unit_price * qty * 2).quantize(Decimal("1"))
    return FakeLine(
        item_id=item_id,
        sku=sku,
        desc=desc,
        qty=qty,
        unit_price=unit_price,
        tax_percentage=Decimal(rng.choice(TAX_RATES)),
        discount=discount,
    )


def build_order(rng: Random, fake: Faker) -> FakeOrder:
    d = fake.date_between(start_date="-90d", end_date="today")
    lines = [random_line(rng) for _ in range(rng.randint(1, 12))]
    order = FakeOrder(
        kind=rng.choice(["PURCHASE", "SALE"]),
        order_date=d.isoformat(),
        due_date=(d + timedelta(days=rng.choice([0, 14, 30, 45]))).isoformat(),
        currency="IDR",
        additional_discount=Decimal("0"),
        expense=Decimal(rng.choice([0, 0, 15000, 50000, 125000])),
        lines=lines,
    )
    if rng.random() < 0.3:
        order.additional_discount = Decimal(rng.choice([5000, 25000, 100000]))
    if rng.random() < 0.03:
        order.additional_discount = Decimal("999999999")
    return order


def claimed_totals(order: FakeOrder) -> dict:
    header = calculate_header_totals(
        [OrderLine(ln.qty, ln.unit_price, ln.tax_percentage, ln.discount) for ln in order.lines],
        order.additional_discount,
        order.expense,
        0,
        0,
    )
    rounded = round_header_totals(header)
    return {
        "subtotal": str(rounded.subtotal),
        "total_tax": str(rounded.total_tax),
        "grand_total": str(rounded.grand_total),
    }


def to_payload(order: FakeOrder) -> dict:
    return {
        "kind": order.kind,
        "party_id": "",
        "order_date": order.order_date,
        "due_date": order.due_date,
        "currency": order.currency,
        "additional_discount": str(order.additional_discount),
        "expense": str(order.expense),
        "lines": [
            {
                "item_id": ln.item_id,
                "sku": ln.sku,
                "desc": ln.desc,
                "qty": str(ln.qty),
                "unit_price": str(ln.unit_price),
                "tax_percentage": str(ln.tax_percentage),
                "discount": str(ln.discount),
            }
            for ln in order.lines
        ],
        "claimed_totals": claimed_totals(order),
    }


def write_json(out_dir: Path, orders: List[FakeOrder]) -> None:
    ensure_dir(out_dir)
    for i, order in enumerate(orders, start=1):
        path = out_dir / f"order-{i:04d}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(to_payload(order), f, indent=2)


def write_csv(out_dir: Path, orders: List[FakeOrder]) -> None:
    ensure_dir(out_dir)
    with open(out_dir / "orders.csv", "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["ref", "kind", "order_date", "currency", "additional_discount", "expense",
                    "subtotal", "total_tax", "grand_total"])
        for i, order in enumerate(orders, start=1):
            t = claimed_totals(order)
            w.writerow([f"order-{i:04d}", order.kind, order.order_date, order.currency,
                        order.additional_discount, order.expense, t["subtotal"], t["total_tax"], t["grand_total"]])

    with open(out_dir / "order_lines.csv", "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["ref", "sku", "desc", "qty", "unit_price", "tax_percentage", "discount"])
        for i, order in enumerate(orders, start=1):
            for ln in order.lines:
                w.writerow([f"order-{i:04d}", ln.sku, ln.desc, ln.qty, ln.unit_price, ln.tax_percentage, ln.discount])


def main() -> None:
    ap = argparse.ArgumentParser(description="Generate synthetic purchase/sales orders")
    ap.add_argument("--json", type=Path, help="Output directory for per-order JSON payloads")
    ap.add_argument("--csv", type=Path, help="Output directory for CSV files")
    ap.add_argument("--n", type=int, default=12, help="Number of orders to generate")
    ap.add_argument("--seed", type=int, default=42, help="RNG seed for reproducibility")
    args = ap.parse_args()

    rng = Random(args.seed)
    fake = Faker("id_ID")
    Faker.seed(args.seed)

    orders = [build_order(rng, fake) for _ in range(args.n)]

    if args.json:
        write_json(args.json, orders)
        print(f"[ok] Wrote {len(orders)} JSON payloads to {args.json}")

    if args.csv:
        write_csv(args.csv, orders)
        print(f"[ok] Wrote CSV to {args.csv}/orders.csv and {args.csv}/order_lines.csv")

    if not any([args.json, args.csv]):
        print("No outputs selected. Use --json/--csv.")


if __name__ == "__main__":
    main()
