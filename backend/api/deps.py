"""FastAPI dependencies for template name extraction and validation."""

from fastapi import HTTPException, Path


async def get_template_name(
    name: str = Path(..., description="Mapping template name", min_length=1, max_length=64)
) -> str:
    """Extract and validate a mapping template name from the URL path.

    Raises 400 if the name contains anything but letters, digits, '_' or '-'.
    """
    if not name.replace("_", "").replace("-", "").isalnum():
        raise HTTPException(
            status_code=400,
            detail=f"Invalid template name format: '{name}'. "
                   f"Must be alphanumeric with underscores or dashes."
        )
    return name
