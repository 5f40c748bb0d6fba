"""
Transformation rule endpoints
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing import List
from api.dependencies import get_services
from ingestion.container import ETLServices
from schemas.api import ToggleResult
from schemas.entities import Transformation, TransformationCreate

router = APIRouter(prefix="/transformations", tags=["Transformations"])


@router.post("", response_model=Transformation, status_code=201)
async def create_transformation(payload: TransformationCreate, services: ETLServices = Depends(get_services)):
    return await services.transformations.create(payload)


@router.get("", response_model=List[Transformation])
async def list_transformations(services: ETLServices = Depends(get_services)):
    return await services.transformations.list()


@router.get("/{transformation_id}", response_model=Transformation)
async def get_transformation(transformation_id: str, services: ETLServices = Depends(get_services)):
    return await services.transformations.get(transformation_id)


@router.patch("/{transformation_id}/enable", response_model=Transformation)
async def enable_transformation(transformation_id: str, services: ETLServices = Depends(get_services)):
    transformation = await services.transformations.enable(transformation_id)
    if transformation is None:
        return JSONResponse(content=ToggleResult(id=transformation_id).model_dump())
    return transformation


@router.patch("/{transformation_id}/disable", response_model=Transformation)
async def disable_transformation(transformation_id: str, services: ETLServices = Depends(get_services)):
    transformation = await services.transformations.disable(transformation_id)
    if transformation is None:
        return JSONResponse(content=ToggleResult(id=transformation_id).model_dump())
    return transformation


@router.delete("/{transformation_id}")
async def delete_transformation(transformation_id: str, services: ETLServices = Depends(get_services)):
    deleted = await services.transformations.delete(transformation_id)
    return {"id": transformation_id, "deleted": deleted}
