import os, sys, json, pathlib, itertools
import httpx
from dotenv import load_dotenv

load_dotenv(".env.local")
ROOT = pathlib.Path(sys.argv[1]).resolve()
API = os.getenv("ORDERDESK_API", "http://localhost:8000")
FINALIZE = "--finalize" in sys.argv[2:]

with httpx.Client(base_url=API, timeout=10.0) as client:
    vendors = client.get("/vendors", params={"active_only": True}).raise_for_status().json()
    customers = client.get("/customers", params={"active_only": True}).raise_for_status().json()
    if not vendors or not customers:
        raise SystemExit("[err] seed vendors and customers first (python scripts/seed.py)")
    parties = {
        "PURCHASE": itertools.cycle(v["id"] for v in vendors),
        "SALE": itertools.cycle(c["id"] for c in customers),
    }

    created, rejected = 0, 0
    for p in sorted(ROOT.glob("*.json")):
        payload = json.loads(p.read_text(encoding="utf-8"))
        payload["party_id"] = next(parties[payload["kind"]])
        resp = client.post("/orders", json=payload)
        if resp.status_code != 201:
            rejected += 1
            print(f"[warn] {p.name}: {resp.status_code} {resp.text}")
            continue
        created += 1
        body = resp.json()
        if FINALIZE:
            client.post(f"/orders/{body['order_id']}/finalize").raise_for_status()

print(f"[ok] created {created} orders ({rejected} rejected) against {API}")
