"""Health check endpoints."""

from totaldash.api.router import TrailingSlashRouter

router = TrailingSlashRouter()


@router.get("")
async def health_check() -> dict[str, str]:
    """Liveness probe; does not touch the database or Stripe."""
    return {"status": "healthy"}
