import logging
from fastapi import APIRouter, Depends, HTTPException

from receta.core.dependencies import get_calculator, get_storage
from receta.models.patient import Patient, PatientCreate
from receta.services.adherence import AdherenceCalculator
from receta.services.storage import StorageService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/patients", tags=["patients"])


#------This Function lists patients---------
@router.get("/")
async def list_patients(storage: StorageService = Depends(get_storage)):
    return [p.to_record() for p in await storage.get_patients()]


#------This Function creates a patient---------
@router.post("/")
async def create_patient(body: PatientCreate, storage: StorageService = Depends(get_storage)):
    patient = Patient(name=body.name, age=body.age, notes=body.notes)
    if not await storage.save_patient(patient):
        raise HTTPException(status_code=500, detail="Failed to create patient")
    logger.info(f"Created patient {patient.id}")
    return patient.to_record()


#------This Function gets a patient---------
@router.get("/{patient_id}")
async def get_patient(patient_id: str, storage: StorageService = Depends(get_storage)):
    patient = await storage.get_patient_by_id(patient_id)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient.to_record()


#------This Function gets adherence stats across a patient's treatments---------
@router.get("/{patient_id}/stats")
async def patient_stats(
    patient_id: str,
    calculator: AdherenceCalculator = Depends(get_calculator),
):
    return {"patientId": patient_id, **(await calculator.patient_stats(patient_id)).to_record()}
