import argparse
import json
import pathlib

from fastapi.openapi.utils import get_openapi

from apps.orderdesk.main import app


def main() -> None:
    ap = argparse.ArgumentParser(description="Dump the OrderDesk OpenAPI schema")
    ap.add_argument("--out", type=pathlib.Path, default=pathlib.Path("openapi.json"))
    args = ap.parse_args()

    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    args.out.write_text(json.dumps(schema, indent=2))
    print(f"Wrote {args.out} ({len(schema.get('paths', {}))} paths)")


if __name__ == "__main__":
    main()
