"""
FastAPI API for EasyDrive Intake

Every UI event of the intake screen (file pick, extract, field edit, map
click, submit, clear) is one endpoint; each answers with the full screen
state so a thin front end can render it directly.
"""
from fastapi import FastAPI, HTTPException, UploadFile, File
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional

from easydrive import (
    IntakeWorkflow,
    JsonFileStore,
    NoRecordError,
    Session,
    UnknownFieldError,
    UnsupportedFileError,
    UserInputError,
)
from easydrive.config import config, setup_logging

setup_logging()

# Initialize FastAPI app
app = FastAPI(
    title=config.APP_NAME,
    description="API driving the document intake workflow and dropoff address/map synchronization",
    version=config.APP_VERSION,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize workflow (singleton)
workflow = None


def get_workflow() -> IntakeWorkflow:
    """Get or create the workflow; must be called from a request handler"""
    global workflow
    if workflow is None:
        session = Session(JsonFileStore(config.STORE_PATH))
        workflow = IntakeWorkflow(session)
        workflow.resume_sync()
    return workflow


# Request Models
class LoginRequest(BaseModel):
    """Request model for storing the sign-in credential"""
    credential: str = Field(..., description="JWT credential issued by the identity provider")


class FieldValueRequest(BaseModel):
    """Request model for a single record field edit"""
    value: str = Field(..., description="New text for the field")

    class Config:
        json_schema_extra = {
            "example": {"value": "2020"}
        }


class MapClickRequest(BaseModel):
    """Request model for a click on the dropoff map"""
    lat: float = Field(..., ge=-90, le=90, description="Latitude of the clicked point")
    lng: float = Field(..., ge=-180, le=180, description="Longitude of the clicked point")

    class Config:
        json_schema_extra = {
            "example": {"lat": 45.5017, "lng": -73.5673}
        }


ERROR_RESPONSES = [
    (UnknownFieldError, 404, "unknown_field"),
    (NoRecordError, 409, "no_record"),
    (UnsupportedFileError, 400, "unsupported_file"),
    (UserInputError, 400, "invalid_input"),
]


def _http_error(e: UserInputError) -> HTTPException:
    for error_class, status_code, error_type in ERROR_RESPONSES:
        if isinstance(e, error_class):
            return HTTPException(
                status_code=status_code,
                detail={"error": type(e).__name__, "message": str(e), "type": error_type},
            )
    return HTTPException(
        status_code=400,
        detail={"error": type(e).__name__, "message": str(e), "type": "invalid_input"},
    )


# API Endpoints
@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "EasyDrive Intake API",
        "version": config.APP_VERSION,
        "endpoints": {
            "GET /state": "Current intake screen state",
            "POST /login": "Store the sign-in credential",
            "POST /logout": "Forget the sign-in credential",
            "POST /file": "Select (replace) the document to extract",
            "DELETE /file/{file_id}": "Remove the selected document",
            "POST /extract": "Extract the selected document",
            "POST /action": "Extract, or submit when a record exists",
            "PATCH /record/{section}/{key}": "Edit one record field",
            "PATCH /record/{section}": "Edit a top-level text field (dealer_notes)",
            "POST /map-click": "Place the dropoff at a map position",
            "POST /submit": "Submit the reviewed record",
            "POST /clear": "Discard everything",
            "POST /receipt/dismiss": "Close the submission receipt",
            "GET /health": "Health check",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    try:
        wf = get_workflow()
        return {
            "status": "healthy",
            "workflow_initialized": True,
            "intake_status": wf.status.value,
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }


@app.get("/state", response_model=Dict[str, Any])
async def get_state():
    return get_workflow().snapshot()


@app.post("/login", response_model=Dict[str, Any])
async def login(request: LoginRequest):
    wf = get_workflow()
    wf.session.login(request.credential)
    return wf.snapshot()


@app.post("/logout", response_model=Dict[str, Any])
async def logout():
    wf = get_workflow()
    wf.session.logout()
    return wf.snapshot()


@app.post("/file", response_model=Dict[str, Any])
async def select_file(file: UploadFile = File(..., description="Release form (PDF, DOC, DOCX, JPG, PNG)")):
    """
    Select the document to extract.

    Replaces any previous file and discards its extracted record.
    """
    content = await file.read()
    wf = get_workflow()
    try:
        wf.select_file(file.filename or "upload", content, file.content_type)
    except UserInputError as e:
        raise _http_error(e)
    return wf.snapshot()


@app.delete("/file/{file_id}", response_model=Dict[str, Any])
async def remove_file(file_id: str):
    wf = get_workflow()
    wf.remove_file(file_id)
    return wf.snapshot()


@app.post("/extract", response_model=Dict[str, Any])
async def extract():
    """
    Send the selected document to the extraction service.

    Failures are reported in the returned state (status "error" with the
    server's message), not as HTTP errors.
    """
    wf = get_workflow()
    await wf.extract()
    return wf.snapshot()


@app.post("/action", response_model=Dict[str, Any])
async def primary_action():
    wf = get_workflow()
    await wf.primary_action()
    return wf.snapshot()


@app.patch("/record/{section}/{key}", response_model=Dict[str, Any])
async def edit_field(section: str, key: str, request: FieldValueRequest):
    """
    Edit one field of the extracted record.

    Editing ``dropoff_location/address`` geocodes the new address after a
    short pause and fills in the coordinates.
    """
    wf = get_workflow()
    try:
        wf.edit_field(section, key, request.value)
    except UserInputError as e:
        raise _http_error(e)
    return wf.snapshot()


@app.patch("/record/{section}", response_model=Dict[str, Any])
async def edit_text_field(section: str, request: FieldValueRequest):
    wf = get_workflow()
    try:
        wf.edit_field(section, None, request.value)
    except UserInputError as e:
        raise _http_error(e)
    return wf.snapshot()


@app.post("/map-click", response_model=Dict[str, Any])
async def map_click(request: MapClickRequest):
    """
    Place the dropoff at a clicked position.

    Coordinates are stored immediately; the address is filled in from a
    reverse geocode before this call returns.
    """
    wf = get_workflow()
    try:
        await wf.map_click(request.lat, request.lng)
    except UserInputError as e:
        raise _http_error(e)
    return wf.snapshot()


@app.post("/submit", response_model=Dict[str, Any])
async def submit():
    wf = get_workflow()
    await wf.submit()
    return wf.snapshot()


@app.post("/clear", response_model=Dict[str, Any])
async def clear_all():
    wf = get_workflow()
    wf.clear_all()
    return wf.snapshot()


@app.post("/receipt/dismiss", response_model=Dict[str, Any])
async def dismiss_receipt():
    wf = get_workflow()
    wf.dismiss_receipt()
    return wf.snapshot()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=config.LOG_LEVEL.lower())
