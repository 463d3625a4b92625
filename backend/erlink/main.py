# erlink/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from erlink import __version__
from erlink.config import LOG_LEVEL
from erlink.database import Base, engine
from erlink.endpoints import cases, hospitals, ws_cases
from erlink.exceptions import DispatchError
import erlink.models  # noqa: F401  registers tables with Base

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("erlink")

app = FastAPI(title="ERLink Dispatch API", version=__version__)


@app.on_event("startup")
def startup_event():
    # Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables ready")


@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError):
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.to_dict()})


# Include HTTP routers
app.include_router(hospitals)
app.include_router(cases)

# Mount WebSocket endpoints
app.add_api_websocket_route("/ws/hospitals/{hospital_id}/cases", ws_cases.ws_hospital_cases)


@app.get("/")
def root():
    return {"message": "API is running"}
