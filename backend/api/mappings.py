"""Column mapping endpoints — validation and saved templates."""

from fastapi import APIRouter, Depends, HTTPException, Request

from backend.api.deps import get_template_name
from backend.core.mapping_validator import validate_mapping
from backend.core.models import MappingConfig, MappingTemplateCreate, MappingValidationResponse

router = APIRouter()


@router.post("/mappings/validate", response_model=MappingValidationResponse)
async def validate_column_mapping(body: MappingConfig):
    """Check a column mapping: one column per level, exactly one categorical column."""
    validation = validate_mapping(body)
    return MappingValidationResponse(valid=validation.is_valid, errors=validation.errors)


@router.get("/mappings")
async def list_mapping_templates(request: Request):
    """List saved mapping templates."""
    registry = request.app.state.mapping_registry
    return {"templates": registry.list_templates()}


@router.get("/mappings/{name}")
async def get_mapping_template(request: Request, name: str = Depends(get_template_name)):
    """Get a saved mapping template."""
    registry = request.app.state.mapping_registry
    try:
        template = registry.get_template(name)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Mapping template '{name}' not found")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return template.model_dump()


@router.post("/mappings", status_code=201)
async def create_mapping_template(body: MappingTemplateCreate, request: Request):
    """Register a mapping template from YAML."""
    registry = request.app.state.mapping_registry
    try:
        template = registry.load_template_from_yaml(body.template_yaml)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Invalid mapping template YAML: {e}")

    errors = registry.validate_template(template)
    if errors:
        raise HTTPException(status_code=422, detail={"validation_errors": errors})

    registry.register_template(template)
    return template.model_dump()
