from fastapi import FastAPI, HTTPException, Request
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional, Dict, Any, List
import os
import logging
from dotenv import load_dotenv

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from services.flow_store import FlowDefinitionStore, FlowNotFoundError
from services.flow_visualizer import render_definition
from services.params_extractor import extract_params
from translators.reactflow_translator import ReactFlowTranslator
from utils.config import LayoutSettings

# Load environment variables
load_dotenv()

# Initialize services
reactflow_translator = ReactFlowTranslator(LayoutSettings.from_env())

# Database path (SQLite file)
database_path = os.getenv("DATABASE_PATH", "flow_visualizer.db")
if not os.path.isabs(database_path) and database_path != ":memory:":
    # Make path relative to backend directory
    database_path = os.path.join(os.path.dirname(__file__), database_path)

logger.info(f"Using SQLite database at: {database_path}")

flow_store = FlowDefinitionStore(database_path)

# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the definition store on startup and close it on shutdown"""
    logger.info("Starting up Flow Visualizer API...")
    try:
        await flow_store.connect()
        await flow_store.initialize()
        logger.info("Database connection established successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        raise

    yield

    logger.info("Shutting down Flow Visualizer API...")
    try:
        await flow_store.close()
        logger.info("Database connection closed successfully")
    except Exception as e:
        logger.error(f"Error closing database connection: {e}")

app = FastAPI(
    title="Flow Visualizer",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS - Simplified for local use
allowed_origins = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://localhost:8000",
]

logger.info(f"CORS enabled for origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


# ============================================================================
# REQUEST MODELS
# ============================================================================

class RenderRequest(BaseModel):
    definition: str
    syntax: Optional[str] = None
    layout: str = "hierarchical"
    expandSubflows: bool = True

class ParamsRequest(BaseModel):
    definition: str

class FlowCreateRequest(BaseModel):
    name: str
    description: Optional[str] = None

class FlowVersionCreateRequest(BaseModel):
    definition: str
    status: str = "draft"


# ============================================================================
# RENDERING ENDPOINTS
# ============================================================================

@app.get("/health")
async def health():
    return {"status": "ok"}

@app.post("/api/flows/render")
async def render_flow(request: RenderRequest):
    """Expand and lay out a definition; malformed text renders an empty graph"""
    try:
        return render_definition(
            request.definition,
            syntax=request.syntax,
            layout_algorithm=request.layout,
            translator=reactflow_translator,
            expand_subflows=request.expandSubflows,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/flows/params")
async def flow_params(request: ParamsRequest):
    """Parameters referenced by a definition, for pre-filling a run"""
    return {"params": extract_params(request.definition)}


# ============================================================================
# FLOW STORE ENDPOINTS
# ============================================================================

@app.post("/api/flows")
async def create_flow(request: FlowCreateRequest):
    try:
        return await flow_store.create_flow(request.name, request.description)
    except Exception as e:
        logger.error(f"Error creating flow: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.post("/api/flows/{flow_id}/versions")
async def create_flow_version(flow_id: str, request: FlowVersionCreateRequest):
    try:
        return await flow_store.save_flow_version(flow_id, request.definition, request.status)
    except FlowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error saving flow version: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/flows/{flow_id}/versions", response_model=List[Dict[str, Any]])
async def list_flow_versions(flow_id: str):
    try:
        return await flow_store.list_versions(flow_id)
    except Exception as e:
        logger.error(f"Error listing flow versions: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/flows/{flow_id}/versions/{version}/graph")
async def flow_version_graph(flow_id: str, version: int, layout: str = "hierarchical"):
    """Render a stored flow version"""
    try:
        definition = await flow_store.get_definition(flow_id, version)
    except Exception as e:
        logger.error(f"Error loading flow definition: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if definition is None:
        raise HTTPException(status_code=404, detail=f"Flow {flow_id} version {version} not found")

    try:
        return render_definition(definition, layout_algorithm=layout, translator=reactflow_translator)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
