import logging
import socket
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from receta.core.config import settings
from receta.core.database import connect_db, close_db, check_db_health
from receta.routes import (
    treatments,
    doses,
    patients,
    reports,
    onboarding,
    data,
)
from receta.routes import settings as settings_router
from receta.services.dose_generator import DoseGenerator
from receta.services.seed_data import SeedDataService
from receta.services.storage import StorageService


GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"
BOLD = "\033[1m"


logging.basicConfig(
    level=logging.INFO if settings.environment == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


#------This Function gets the LAN IPv4---------
def _get_lan_ipv4() -> Optional[str]:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip = sock.getsockname()[0]
            if ip and not ip.startswith("127."):
                return ip
    except OSError:
        pass
    return None


#------This Function seeds demo data according to the startup mode---------
async def _seed_on_startup(storage: StorageService) -> None:
    mode = settings.seed_on_startup
    if mode == "never":
        return
    seeder = SeedDataService(
        storage, DoseGenerator(storage, settings.default_horizon_days), max_days=settings.seed_max_days
    )
    if mode == "if_empty" and await seeder.has_data():
        logger.info("Seed skipped: store already has treatments")
        return
    if await seeder.seed_all():
        print(f"{GREEN}[OK] Seed data loaded{RESET}")
    else:
        logger.warning("Seed data could not be loaded")


#------This Function handles the lifespan events---------
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.environment} environment")
    print(f"{BOLD}{BLUE}Receta Segura Backend v1.0.0{RESET}")

    try:
        backend = await connect_db()
        print(f"{GREEN}[OK] Storage connected ({settings.storage_backend}){RESET}")
    except Exception as e:
        logger.error(f"Failed to connect to storage: {str(e)}")
        raise

    app.state.backend = backend
    app.state.storage = StorageService(backend, settings.storage_key_prefix)

    await _seed_on_startup(app.state.storage)

    lan_ip = _get_lan_ipv4()
    logger.info(f"Local API URL: http://127.0.0.1:{settings.port}")
    if lan_ip:
        logger.info(f"Network API URL: http://{lan_ip}:{settings.port}")

    yield

    logger.info("Shutting down application...")
    print(f"{YELLOW}[SHUTDOWN] Stopping services...{RESET}")
    await close_db(backend)
    app.state.storage = None
    print(f"{RED}[SHUTDOWN] Application shutdown complete{RESET}")


app = FastAPI(
    title="Receta Segura API",
    description="Medication adherence tracker backend",
    version="1.0.0",
    lifespan=lifespan,
)


#------This Function handles validation errors---------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.method} {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "errors": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


#------This Function handles value errors---------
@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning(f"Value error for {request.method} {request.url}: {str(exc)}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


#------This Function handles general exceptions---------
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error for {request.method} {request.url}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error" if settings.environment == "production" else str(exc)},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(treatments.router)
app.include_router(doses.router)
app.include_router(patients.router)
app.include_router(reports.router)
app.include_router(settings_router.router)
app.include_router(onboarding.router)
app.include_router(data.router)


#------This Function returns health status---------
@app.get("/health")
async def health():
    return {"status": "alive", "service": "receta-backend", "environment": settings.environment}


#------This Function returns detailed health status---------
@app.get("/health/detailed")
async def health_detailed(request: Request):
    db_health = await check_db_health(getattr(request.app.state, "backend", None))
    return {
        "status": "alive",
        "service": "receta-backend",
        "environment": settings.environment,
        "database": db_health,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "receta.main:app",
        host=settings.server_host,
        port=settings.port,
        reload=settings.environment != "production",
    )
