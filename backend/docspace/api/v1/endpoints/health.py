"""Health check API endpoint."""

from fastapi import APIRouter

from docspace.components.workspace.store import get_store_type

router = APIRouter(tags=["Health"])


@router.get("")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "store": get_store_type()}
