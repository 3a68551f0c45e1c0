"""Variable endpoints — build and create measurement variables for tagged assets."""

from fastapi import APIRouter

from backend.api.energy import load_assets
from backend.core.models import VariableBuildRequest, VariableBuildResponse
from backend.core.variable_builder import build_variables, create_variables

router = APIRouter()


@router.post("/variables", response_model=VariableBuildResponse)
def create_energy_variables(body: VariableBuildRequest):
    """Build one variable per template of each asset's energy type.

    - **assets**: assets to consider; fetched from the asset service when omitted
    - **energy_map**: asset id -> energy type
    - **adapter_id**: adapter the variable topics are published under
    - **create**: send the variables to the service (otherwise only preview them)
    """
    assets = load_assets(body.assets)
    variables = build_variables(assets, body.energy_map, body.adapter_id)
    if not body.create:
        return VariableBuildResponse(variables=variables)
    result = create_variables(variables, chunk_size=body.chunk_size)
    return VariableBuildResponse(variables=variables, created=result.created, failures=result.failures)
