"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- A documented 429 response on every rate limited operation (operations
  mark themselves with the ``x-rate-limit-policy`` extension)

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

RATE_LIMIT_EXTENSION = "x-rate-limit-policy"

TAGS_METADATA = [
    {"name": "Hello", "description": "Minimal hello-world endpoints for every HTTP method."},
    {"name": "Person", "description": "CRUD over the in-memory person store."},
    {"name": "Rate limits", "description": "Statistics of the registered rate limiting policies."},
    {"name": "Health", "description": "Liveness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and 429 responses."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for methods in schema.get("paths", {}).values():
            for operation in methods.values():
                if not isinstance(operation, dict):
                    continue
                policy_name = operation.get(RATE_LIMIT_EXTENSION)
                if policy_name is None:
                    continue
                operation.setdefault("responses", {}).setdefault(
                    "429",
                    {
                        "description": (
                            f"Too Many Requests: rejected by rate limiting policy '{policy_name}'."
                        ),
                    },
                )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
