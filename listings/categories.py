from typing import Any, Dict, List, Optional
from database import get_client

async def get_categories(client=None) -> List[Dict[str, Any]]:
    """Get all listing categories ordered by name.

    Args:
        client: The platform client, shared client if omitted

    Returns:
        List of categories with id, name and icon
    """
    if client is None:
        client = await get_client()

    response = await (
        client.table("categories")
        .select("id, name, icon")
        .order("name")
        .execute()
    )
    return response.data or []

async def get_subcategories(category_id: Optional[int] = None, client=None) -> List[Dict[str, Any]]:
    """Get subcategories ordered by name, optionally for one parent category.

    Args:
        category_id: Optional parent category to filter by
        client: The platform client, shared client if omitted

    Returns:
        List of subcategories
    """
    if client is None:
        client = await get_client()

    query = client.table("subcategories").select("*")
    if category_id is not None:
        query = query.eq("parent_category_id", category_id)

    response = await query.order("name").execute()
    return response.data or []
