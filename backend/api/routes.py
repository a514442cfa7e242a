"""REST API routes for Webcam Relay."""

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from registry.errors import DuplicateCodeError, UnknownCodeError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Injected by main.py at startup
_registry = None


def init_routes(registry) -> None:
    """Inject service dependencies into the routes module."""
    global _registry
    _registry = registry


# --- Computers ---

@router.get("/computers")
async def list_computers():
    """Return registered and connected computers."""
    entries = await _registry.list_all()
    return [e.to_wire() for e in entries]


class RegisterComputerBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    connection_code: str | None = Field(default=None, alias="connectionCode")


@router.post("/computers/register", status_code=201)
async def register_computer(body: RegisterComputerBody):
    """Create a durable computer record bound to a connection code."""
    try:
        durable_id = await _registry.register_durable(body.name, body.connection_code)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except DuplicateCodeError as e:
        raise HTTPException(status_code=409, detail=e.message)

    return {"message": "Computer registered successfully", "id": durable_id}


@router.get("/computers/pair/{code}")
async def pair_computer(code: str):
    """Resolve a connection code to the computer id it is bound to."""
    try:
        durable_id = await _registry.pair(code)
    except UnknownCodeError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return {"computerId": durable_id}


# --- Health ---

@router.get("/health")
async def health():
    return {
        "status": "ok",
        "online": _registry.online_count,
        "registered": _registry.registered_count,
    }
