"""Custom router implementation that simply disables slash redirects."""

from typing import Any, Callable

from fastapi import APIRouter
from fastapi.types import DecoratedCallable


class TrailingSlashRouter(APIRouter):
    """Registers each endpoint for both the bare path and the path with a trailing slash.

    Only the bare path appears in the OpenAPI schema. Stripe and the scheduler
    post to fixed URLs, so neither form may answer with a redirect.

    Examples:
        @router.post("/billing") - documented as /billing, answers /billing and /billing/
        @router.post("/billing/") - same as above
    """

    def api_route(
        self, path: str, *, include_in_schema: bool = True, **kwargs: Any
    ) -> Callable[[DecoratedCallable], DecoratedCallable]:
        """Register the bare and the slashed path for the decorated endpoint.

        Args:
            path (str): The path for the endpoint
            include_in_schema (bool): Whether to include the route in the OpenAPI schema
            **kwargs: Additional arguments to pass to the parent api_route method

        Returns:
            Callable[[DecoratedCallable], DecoratedCallable]: The registering decorator.
        """
        path = path.rstrip("/")

        register_bare = super().api_route(path, include_in_schema=include_in_schema, **kwargs)
        register_slashed = super().api_route(path + "/", include_in_schema=False, **kwargs)

        def decorator(func: DecoratedCallable) -> DecoratedCallable:
            register_slashed(func)
            return register_bare(func)

        return decorator
