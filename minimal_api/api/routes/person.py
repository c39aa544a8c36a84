"""Person CRUD routes.

The router is built by a factory so the repository, policy registry and
output cache are passed in explicitly by the app factory. Policies are
resolved while the router is built: naming an unregistered policy fails
app startup instead of the first request.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from starlette.concurrency import run_in_threadpool

from minimal_api.adapters.rate_limit import PolicyRegistry
from minimal_api.core.config import Settings
from minimal_api.core.errors import NotFoundAppError
from minimal_api.core.file_validation import read_upload_file_limited
from minimal_api.core.openapi import RATE_LIMIT_EXTENSION
from minimal_api.core.output_caching import serve_cached
from minimal_api.core.rate_limit import require_rate_limiting
from minimal_api.schemas.person import Person
from minimal_api.services.person_repository import PersonRepository
from minimal_api.services.upload_service import store_person_image
from minimal_api.utils.output_cache import OutputCache, build_cache_key, get_cache_policy

PERSON_LIST_POLICY = "myfixedwindowlimit"
PERSON_CACHE_TAG = "person"

FORBIDDEN_NAME = "voldemort"
FORBIDDEN_NAME_WARNING = "Death Eaters are here..Watch out!!!!!!"


def screen_name(name: str) -> str | None:
    """Return a warning to send instead of echoing ``name``, if any."""

    if name.casefold() == FORBIDDEN_NAME:
        return FORBIDDEN_NAME_WARNING
    return None


def _not_found(person_id: int) -> NotFoundAppError:
    return NotFoundAppError(
        code="person_not_found",
        message=f"Person {person_id} was not found",
        details={"person_id": person_id},
    )


def create_person_router(
    *,
    repository: PersonRepository,
    registry: PolicyRegistry,
    cache: OutputCache | None,
    settings: Settings,
) -> APIRouter:
    """Build the /person router.

    Args:
        repository: Record store backing every route.
        registry: Rate limiting policies; must contain PERSON_LIST_POLICY.
        cache: Output cache, or None to disable response caching.
        settings: Application settings.

    Returns:
        Configured APIRouter.

    Raises:
        UnknownPolicyError: If a referenced policy is not registered.
    """

    router = APIRouter(tags=["Person"])
    list_rate_limit = require_rate_limiting(registry, PERSON_LIST_POLICY, settings.rate_limit)
    list_cache_policy = get_cache_policy(None)
    by_id_cache_policy = get_cache_policy("VaryByRouteParam")
    by_name_cache_policy = get_cache_policy("Expire20")
    max_upload_bytes = settings.app.max_upload_size_mb * 1024 * 1024

    def evict_person_cache() -> None:
        if cache is not None:
            cache.evict_by_tag(PERSON_CACHE_TAG)

    @router.get(
        "/person",
        response_model=list[Person],
        dependencies=[Depends(list_rate_limit)],
        openapi_extra={RATE_LIMIT_EXTENSION: PERSON_LIST_POLICY},
    )
    def list_persons(response: Response) -> Any:
        """Return every person; the list is cached until a person changes."""
        return serve_cached(
            cache,
            list_cache_policy,
            build_cache_key(list_cache_policy, "/person"),
            lambda: [p.model_dump(by_alias=True) for p in repository.get_all()],
            response,
        )

    @router.get("/person/filterbyid", response_model=list[Person])
    def filter_persons_by_id(
        ids: Annotated[list[int], Query(description="Ids to include; repeat the parameter.")] = [],
    ) -> list[Person]:
        """Return persons whose id is in ``ids``."""
        return repository.get_by_ids(ids)

    @router.get("/person/{person_id:int}", response_model=Person)
    def get_person(person_id: int, response: Response) -> Any:
        """Return one person; responses are cached per id."""

        def load() -> dict[str, Any]:
            person = repository.get_by_id(person_id)
            if person is None:
                raise _not_found(person_id)
            return person.model_dump(by_alias=True)

        return serve_cached(
            cache,
            by_id_cache_policy,
            build_cache_key(by_id_cache_policy, "/person/{id}", {"id": person_id}),
            load,
            response,
        )

    @router.post("/person", response_model=Person, status_code=status.HTTP_201_CREATED)
    def create_person(person: Person, response: Response) -> Person:
        """Create a person and point Location at it."""
        created = repository.create(person)
        evict_person_cache()
        response.headers["Location"] = f"/person/{created.id}"
        return created

    @router.put("/person/{person_id:int}", response_model=Person)
    def update_person(person_id: int, person: Person) -> Person:
        """Update a person. The id in the path wins over the id in the body."""
        updated = repository.update(person_id, person)
        if updated is None:
            raise _not_found(person_id)
        evict_person_cache()
        return updated

    @router.delete("/person/{person_id:int}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_person(person_id: int) -> Response:
        if not repository.delete(person_id):
            raise _not_found(person_id)
        evict_person_cache()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/person/upload/{person_id:int}")
    async def upload_person_image(
        person_id: int,
        image_file: UploadFile = File(..., description="Image to store for the person."),
    ) -> dict[str, Any]:
        """Copy an uploaded image into the upload directory."""
        if repository.get_by_id(person_id) is None:
            raise _not_found(person_id)

        data = await read_upload_file_limited(image_file, max_bytes=max_upload_bytes)
        stored = await run_in_threadpool(
            store_person_image,
            settings.app.upload_dir,
            person_id,
            image_file.filename,
            data,
        )
        return {"person_id": person_id, "file_name": stored.name, "size": len(data)}

    @router.get("/person/{name}", response_model=str)
    def get_person_by_name(name: str, response: Response) -> Any:
        """Echo a name back, unless it is one that must not be named."""
        return serve_cached(
            cache,
            by_name_cache_policy,
            build_cache_key(by_name_cache_policy, f"/person/{name}"),
            lambda: screen_name(name) or name,
            response,
        )

    return router
