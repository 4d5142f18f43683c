"""
Land Registry — FastAPI Server
===============================

RESTful API over the parcel registry, tokenization engine, verifier
registry and escrow. The acting identity is passed in the ``X-Caller``
header on every mutating request. Handlers are coroutines with no
awaits, so registry calls run one at a time on the event loop.

Endpoints:
    POST /parcels                              Register a parcel (approver)
    POST /parcels/{plot}/verify                Verify a parcel (approver)
    GET  /parcels/{plot}                       Parcel by plot number
    GET  /thrams/{thram}/parcels               Parcels under a thram
    GET  /owners/{owner}/parcels               Parcels by owner identity
    GET  /dids/{did}/parcels                   Parcels by owner DID
    POST /tokens/{thram|plot|fraction}         Mint a token (engine owner)
    GET  /tokens/{id}                          Token, holder and metadata URI
    PUT  /tokens/{id}/uri                      Set metadata URI (engine owner)
    POST /tokens/{id}/transfer                 Move custody (holder or custodian)
    DELETE /tokens/{id}                        Burn (always refused, 405)
    GET  /thrams/{thram}/tokens                Token ids minted for a thram
    GET  /plots/{plot}/tokens                  Token ids minted for a plot
    POST /verifiers/batch-add                  Add verifiers (administration owner)
    POST /verifiers/batch-remove               Remove verifiers (administration owner)
    POST /verifiers/admin/owner                Hand over the administration
    POST /verifiers/registry/owner             Delegate the verifier registry
    POST /tokens/{id}/verifications/{role}     Bank / court / tax approval
    GET  /tokens/{id}/verification             Approval bits
    POST /sales/{id}/list|verify|pay|transfer|cancel
    GET  /sales/{id}                           Sale record
    POST /withdrawals                          Withdraw sale proceeds
    GET  /balances/{identity}                  Pending withdrawal balance
    GET  /events                               Ordered event feed
    GET  /health                               Health check / readiness probe

Run:
    uvicorn api:app --reload              # Dev (http://localhost:8000)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from land_registry import __version__, config
from land_registry.exceptions import (
    AlreadyCompleteError,
    AlreadyListedError,
    AlreadyVerifiedError,
    AuthorizationError,
    BurnDisabledError,
    DuplicatePaymentError,
    InsufficientAreaError,
    InvalidStateError,
    LandRegistryError,
    MismatchError,
    NoFundsError,
    NotFoundError,
    NotVerifiedError,
    PaymentMismatchError,
    ReentrancyError,
    SetupError,
    TransferFailedError,
    ValidationError,
)
from land_registry.models import (
    LedgerEvent,
    OwnershipToken,
    OwnershipType,
    Parcel,
    SaleRecord,
    SaleStatus,
    VerificationRecord,
    VerifierRole,
)
from land_registry.system import LandRegistrySystem

logging.basicConfig(level=config.LOG_LEVEL)


# ─── Application Lifespan (wire the registry) ───────────────────────

_system: LandRegistrySystem | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire all registry components on startup."""
    global _system  # noqa: PLW0603
    _system = LandRegistrySystem()
    yield
    _system = None


# ─── FastAPI App ─────────────────────────────────────────────────────

app = FastAPI(
    title="Land Registry API",
    description=(
        "Parcel registration, ownership tokenization, bank/court/tax "
        "verification and escrowed sale of land titles."
    ),
    version=__version__,
    lifespan=lifespan,
)


# ─── Error Mapping ──────────────────────────────────────────────────

_STATUS_BY_ERROR: list[tuple[type[LandRegistryError], int]] = [
    (ValidationError, 400),
    (PaymentMismatchError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (MismatchError, 409),
    (InvalidStateError, 409),
    (NotVerifiedError, 409),
    (AlreadyVerifiedError, 409),
    (AlreadyListedError, 409),
    (AlreadyCompleteError, 409),
    (DuplicatePaymentError, 409),
    (InsufficientAreaError, 409),
    (NoFundsError, 409),
    (ReentrancyError, 409),
    (BurnDisabledError, 405),
    (TransferFailedError, 502),
    (SetupError, 500),
]


def _status_for(exc: LandRegistryError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


@app.exception_handler(LandRegistryError)
async def registry_error_handler(request: Request, exc: LandRegistryError) -> JSONResponse:
    return JSONResponse(
        status_code=_status_for(exc),
        content={"code": exc.code, "message": str(exc), "details": exc.details},
    )


# ─── Request / Response Schemas ─────────────────────────────────────


class OwnerVectors(BaseModel):
    """Parallel owner / DID / basis-point vectors."""

    owners: list[str]
    dids: list[str]
    percentages: list[int]


class RegisterLandRequest(OwnerVectors):
    thram_number: str
    plot_number: str
    location: str = ""
    area_acres: int
    area_decimals: int = 0
    ownership_type: OwnershipType = OwnershipType.SINGLE

    model_config = {"json_schema_extra": {"example": {
        "thram_number": "THRAM-123",
        "plot_number": "PLOT-001",
        "location": "Paro, Lango gewog",
        "area_acres": 10,
        "area_decimals": 50,
        "owners": ["0x70997970C51812dc3A010C7d01b50e0d17dc79C8"],
        "dids": ["did:eth:1"],
        "percentages": [10000],
        "ownership_type": "SINGLE",
    }}}


class VerifyLandRequest(BaseModel):
    thram_number: str


class MintThramRequest(OwnerVectors):
    thram_number: str


class MintPlotRequest(OwnerVectors):
    plot_number: str


class MintFractionRequest(OwnerVectors):
    plot_number: str
    acres: int
    decimals: int = 0


class TokenUriRequest(BaseModel):
    uri: str = Field(..., min_length=1)


class MintResponse(BaseModel):
    token_id: int


class TokenOut(BaseModel):
    token: OwnershipToken
    holder: str
    uri: str
    locked: bool = False


class BatchVerifiersRequest(BaseModel):
    identities: list[str]
    role_types: list[int] = Field(description="0=BANK, 1=COURT, 2=TAX")


class BatchResponse(BaseModel):
    applied: int


class NewOwnerRequest(BaseModel):
    new_owner: str


class OwnerOut(BaseModel):
    owner: str


class CustodyRequest(BaseModel):
    to: str


class RoleName(str, Enum):
    bank = "bank"
    court = "court"
    tax = "tax"


class ListRequest(BaseModel):
    price: int


class PaymentRequest(BaseModel):
    value: int


class SaleOut(BaseModel):
    token_id: int
    status: SaleStatus
    sale: Optional[SaleRecord] = None


class TransferResponse(BaseModel):
    token_id: int
    new_holder: str


class AmountResponse(BaseModel):
    identity: str
    amount: int


class HealthResponse(BaseModel):
    status: str
    version: str
    parcels: int
    tokens: int
    events: int


# ─── Helpers ─────────────────────────────────────────────────────────


def _get_system() -> LandRegistrySystem:
    if _system is None:
        raise HTTPException(status_code=503, detail="Registry not initialised")
    return _system


def _sale_out(system: LandRegistrySystem, token_id: int) -> SaleOut:
    return SaleOut(
        token_id=token_id,
        status=system.escrow.get_sale_status(token_id),
        sale=system.escrow.get_sale(token_id),
    )


def _token_out(system: LandRegistrySystem, token_id: int) -> TokenOut:
    tokens = system.tokens
    return TokenOut(
        token=tokens.get_token(token_id),
        holder=tokens.owner_of(token_id),
        uri=tokens.token_uri(token_id),
        locked=tokens.is_locked(token_id),
    )


# ─── Parcel Endpoints ───────────────────────────────────────────────


@app.post("/parcels", status_code=201, tags=["Parcels"], summary="Register a parcel")
async def register_land(request: RegisterLandRequest, x_caller: str = Header(...)) -> Parcel:
    system = _get_system()
    return system.parcels.register_land(
        x_caller,
        request.thram_number,
        request.plot_number,
        request.location,
        request.area_acres,
        request.area_decimals,
        request.owners,
        request.dids,
        request.percentages,
        request.ownership_type,
    )


@app.post("/parcels/{plot_number}/verify", tags=["Parcels"], summary="Verify a parcel")
async def verify_land(
    plot_number: str, request: VerifyLandRequest, x_caller: str = Header(...)
) -> Parcel:
    system = _get_system()
    system.parcels.verify_land(x_caller, request.thram_number, plot_number)
    return system.parcels.get_land_by_plot(plot_number)


@app.get("/parcels/{plot_number}", tags=["Parcels"])
async def get_land_by_plot(plot_number: str) -> Parcel:
    return _get_system().parcels.get_land_by_plot(plot_number)


@app.get("/thrams/{thram_number}/parcels", tags=["Parcels"])
async def get_plots_by_thram(thram_number: str) -> list[Parcel]:
    return _get_system().parcels.get_plots_by_thram(thram_number)


@app.get("/owners/{owner}/parcels", tags=["Parcels"])
async def get_lands_by_owner(owner: str) -> list[Parcel]:
    return _get_system().parcels.get_lands_by_owner(owner)


@app.get("/dids/{did}/parcels", tags=["Parcels"])
async def get_lands_by_user_did(did: str) -> list[Parcel]:
    return _get_system().parcels.get_lands_by_user_did(did)


# ─── Token Endpoints ────────────────────────────────────────────────


@app.post("/tokens/thram", status_code=201, tags=["Tokens"], summary="Mint a thram token")
async def mint_thram_token(request: MintThramRequest, x_caller: str = Header(...)) -> MintResponse:
    token_id = _get_system().tokens.mint_thram_token(
        x_caller, request.thram_number, request.owners, request.dids, request.percentages
    )
    return MintResponse(token_id=token_id)


@app.post("/tokens/plot", status_code=201, tags=["Tokens"], summary="Mint a plot token")
async def mint_plot_token(request: MintPlotRequest, x_caller: str = Header(...)) -> MintResponse:
    token_id = _get_system().tokens.mint_plot_token(
        x_caller, request.plot_number, request.owners, request.dids, request.percentages
    )
    return MintResponse(token_id=token_id)


@app.post("/tokens/fraction", status_code=201, tags=["Tokens"], summary="Mint a fraction token")
async def mint_fraction_token(
    request: MintFractionRequest, x_caller: str = Header(...)
) -> MintResponse:
    token_id = _get_system().tokens.mint_fraction_token(
        x_caller,
        request.plot_number,
        request.acres,
        request.decimals,
        request.owners,
        request.dids,
        request.percentages,
    )
    return MintResponse(token_id=token_id)


@app.get("/tokens/{token_id}", tags=["Tokens"])
async def get_token(token_id: int) -> TokenOut:
    return _token_out(_get_system(), token_id)


@app.put("/tokens/{token_id}/uri", tags=["Tokens"])
async def set_token_uri(
    token_id: int, request: TokenUriRequest, x_caller: str = Header(...)
) -> TokenOut:
    system = _get_system()
    system.tokens.set_token_uri(x_caller, token_id, request.uri)
    return _token_out(system, token_id)


@app.post("/tokens/{token_id}/transfer", tags=["Tokens"], summary="Move custody of a token")
async def transfer_custody(
    token_id: int, request: CustodyRequest, x_caller: str = Header(...)
) -> TokenOut:
    system = _get_system()
    system.tokens.transfer_custody(x_caller, token_id, request.to)
    return _token_out(system, token_id)


@app.delete("/tokens/{token_id}", tags=["Tokens"], summary="Burn a token (always refused)")
async def burn_token(token_id: int, x_caller: str = Header(...)) -> None:
    _get_system().tokens.burn(x_caller, token_id)


@app.get("/thrams/{thram_number}/tokens", tags=["Tokens"])
async def get_tokens_by_thram(thram_number: str) -> list[int]:
    return _get_system().tokens.get_tokens_by_thram(thram_number)


@app.get("/plots/{plot_number}/tokens", tags=["Tokens"])
async def get_tokens_by_plot(plot_number: str) -> list[int]:
    return _get_system().tokens.get_tokens_by_plot(plot_number)


# ─── Verification Endpoints ─────────────────────────────────────────


@app.post("/verifiers/batch-add", tags=["Verification"])
async def batch_add_verifiers(
    request: BatchVerifiersRequest, x_caller: str = Header(...)
) -> BatchResponse:
    applied = _get_system().verifier_admin.batch_add_verifiers(
        x_caller, request.identities, request.role_types
    )
    return BatchResponse(applied=applied)


@app.post("/verifiers/batch-remove", tags=["Verification"])
async def batch_remove_verifiers(
    request: BatchVerifiersRequest, x_caller: str = Header(...)
) -> BatchResponse:
    applied = _get_system().verifier_admin.batch_remove_verifiers(
        x_caller, request.identities, request.role_types
    )
    return BatchResponse(applied=applied)


@app.post("/verifiers/admin/owner", tags=["Verification"])
async def transfer_admin_ownership(
    request: NewOwnerRequest, x_caller: str = Header(...)
) -> OwnerOut:
    admin = _get_system().verifier_admin
    admin.transfer_ownership(x_caller, request.new_owner)
    return OwnerOut(owner=admin.owner)


@app.post("/verifiers/registry/owner", tags=["Verification"])
async def transfer_registry_ownership(
    request: NewOwnerRequest, x_caller: str = Header(...)
) -> OwnerOut:
    system = _get_system()
    system.verifier_admin.transfer_registry_ownership(x_caller, request.new_owner)
    return OwnerOut(owner=system.verifiers.owner)


@app.post("/tokens/{token_id}/verifications/{role}", tags=["Verification"])
async def verify_token(token_id: int, role: RoleName, x_caller: str = Header(...)) -> VerificationRecord:
    return _get_system().verifiers.verify_status(
        x_caller, token_id, VerifierRole[role.value.upper()]
    )


@app.get("/tokens/{token_id}/verification", tags=["Verification"])
async def get_verification(token_id: int) -> VerificationRecord:
    return _get_system().verifiers.get_verification(token_id)


# ─── Escrow Endpoints ───────────────────────────────────────────────


@app.post("/sales/{token_id}/list", tags=["Escrow"])
async def list_land_for_sale(
    token_id: int, request: ListRequest, x_caller: str = Header(...)
) -> SaleOut:
    system = _get_system()
    system.escrow.list_land_for_sale(x_caller, token_id, request.price)
    return _sale_out(system, token_id)


@app.post("/sales/{token_id}/verify", tags=["Escrow"])
async def verify_land_details(token_id: int, x_caller: str = Header(...)) -> SaleOut:
    system = _get_system()
    system.escrow.verify_land_details(x_caller, token_id)
    return _sale_out(system, token_id)


@app.post("/sales/{token_id}/pay", tags=["Escrow"])
async def make_payment(
    token_id: int, request: PaymentRequest, x_caller: str = Header(...)
) -> SaleOut:
    system = _get_system()
    system.escrow.make_payment(x_caller, token_id, request.value)
    return _sale_out(system, token_id)


@app.post("/sales/{token_id}/transfer", tags=["Escrow"])
async def transfer_ownership_after_payment(
    token_id: int, x_caller: str = Header(...)
) -> TransferResponse:
    buyer = _get_system().escrow.transfer_ownership_after_payment(x_caller, token_id)
    return TransferResponse(token_id=token_id, new_holder=buyer)


@app.post("/sales/{token_id}/cancel", tags=["Escrow"])
async def cancel_sale(token_id: int, x_caller: str = Header(...)) -> SaleOut:
    system = _get_system()
    system.escrow.cancel_sale(x_caller, token_id)
    return _sale_out(system, token_id)


@app.get("/sales/{token_id}", tags=["Escrow"])
async def get_sale(token_id: int) -> SaleOut:
    return _sale_out(_get_system(), token_id)


@app.post("/withdrawals", tags=["Escrow"])
async def withdraw(x_caller: str = Header(...)) -> AmountResponse:
    amount = _get_system().escrow.withdraw(x_caller)
    return AmountResponse(identity=x_caller, amount=amount)


@app.get("/balances/{identity}", tags=["Escrow"])
async def pending_withdrawal(identity: str) -> AmountResponse:
    return AmountResponse(
        identity=identity, amount=_get_system().escrow.pending_withdrawal(identity)
    )


# ─── System Endpoints ───────────────────────────────────────────────


@app.get("/events", tags=["System"])
async def list_events(component: Optional[str] = None, name: Optional[str] = None) -> list[LedgerEvent]:
    return _get_system().events.events(component=component, name=name)


@app.get(
    "/health",
    summary="Health check",
    tags=["System"],
    responses={503: {"description": "Registry not yet initialised"}},
)
async def health_check() -> HealthResponse:
    """Returns service status and registry counters."""
    summary = _get_system().summary()
    return HealthResponse(
        status="healthy",
        version=__version__,
        parcels=summary["parcels"],
        tokens=summary["tokens"],
        events=summary["events"],
    )
