"""Write the service's OpenAPI document to ``DOCS_OUTPUT_PATH``."""
from __future__ import annotations

import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(PROJECT_ROOT))

from viewcounter.config import get_settings  # noqa: E402
from viewcounter.main import app  # noqa: E402


def main() -> None:
    output_path = Path(get_settings().docs_output_path)
    if not output_path.is_absolute():
        output_path = PROJECT_ROOT / output_path

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(app.openapi(), indent=2, sort_keys=True))
    print(f"OpenAPI schema written to {output_path}")


if __name__ == "__main__":
    main()
