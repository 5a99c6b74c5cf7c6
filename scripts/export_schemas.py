"""Export JSON schemas for the tool contracts and realtime event payloads."""

import json
from pathlib import Path

from pydantic import BaseModel

from knowshare.app.models import (
    GetInformationInput,
    RequestCreatedPayload,
    RequestKnowledgeInput,
    RequestKnowledgeOutput,
    RequestResponsePayload,
    RetrievalResult,
)

SCHEMAS: dict[str, type[BaseModel]] = {
    "GetInformationInput": GetInformationInput,
    "RetrievalToolOutput": RetrievalResult,
    "RequestKnowledgeInput": RequestKnowledgeInput,
    "RequestKnowledgeOutput": RequestKnowledgeOutput,
    "RequestCreatedPayload": RequestCreatedPayload,
    "RequestResponsePayload": RequestResponsePayload,
}


def main() -> None:
    """Export schemas to docs/schemas/."""
    schemas_dir = Path("docs/schemas")
    schemas_dir.mkdir(parents=True, exist_ok=True)

    for name, model in SCHEMAS.items():
        path = schemas_dir / f"{name}.schema.json"
        with open(path, "w") as f:
            json.dump(model.model_json_schema(by_alias=True), f, indent=2)
        print(f"Exported {name} schema to {path}")


if __name__ == "__main__":
    main()
