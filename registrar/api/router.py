from fastapi import APIRouter
from registrar.api.crud_modules import router as crud

router = APIRouter()
router.include_router(crud.router, tags=["Resources"])
