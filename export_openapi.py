import json
import sys
from pathlib import Path

from geodb.main import app


def main(argv: list[str]) -> None:
    """Write the service's OpenAPI document, by default to openapi/geodb.openapi.json."""
    out_path = Path(argv[0]) if argv else Path("openapi") / "geodb.openapi.json"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(app.openapi(), indent=2))
    print(f"Wrote {out_path}")  # noqa: T201


if __name__ == "__main__":
    main(sys.argv[1:])
