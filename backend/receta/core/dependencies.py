from fastapi import Depends, HTTPException, Request, status

from receta.core.config import settings
from receta.services.adherence import AdherenceCalculator
from receta.services.dose_generator import DoseGenerator
from receta.services.seed_data import SeedDataService
from receta.services.storage import StorageService


#------This Function returns the storage bound to the running app---------
def get_storage(request: Request) -> StorageService:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage not initialized",
        )
    return storage


def get_generator(storage: StorageService = Depends(get_storage)) -> DoseGenerator:
    return DoseGenerator(storage, settings.default_horizon_days)


def get_calculator(storage: StorageService = Depends(get_storage)) -> AdherenceCalculator:
    return AdherenceCalculator(storage)


def get_seeder(
    storage: StorageService = Depends(get_storage),
    generator: DoseGenerator = Depends(get_generator),
) -> SeedDataService:
    return SeedDataService(storage, generator, max_days=settings.seed_max_days)
