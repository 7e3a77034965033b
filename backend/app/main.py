import base64
import binascii
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

import config
from accounts.checkout import CheckoutCancelled, CheckoutCompleted, apply_checkout
from accounts.entitlement import Entitlement
from accounts.models import AccountRecord, SubscriptionPlan
from accounts.plans import PLANS, format_price
from accounts.storage import AccountError, AccountStore
from solver.pipeline import PipelineError
from solver.service import SolveService, SolveStatus, UnknownAccount


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class CheckoutRequest(BaseModel):
    plan: SubscriptionPlan
    status: str  # "completed" or "cancelled"
    reference: str = ""


class SolveRequest(BaseModel):
    email: str
    image_base64: str


class EntitlementInfo(BaseModel):
    subscribed: bool
    expires_at: Optional[datetime]
    free_uses_remaining: int
    can_solve: bool


class AccountView(BaseModel):
    email: str
    name: str
    subscription_plan: SubscriptionPlan
    subscription_started_at: Optional[datetime]
    free_uses_consumed: int
    entitlement: EntitlementInfo


class PlanInfo(BaseModel):
    plan: SubscriptionPlan
    label: str
    duration_months: int
    price: int
    currency: str
    display_price: str


class SolveResponse(BaseModel):
    recognized_line: str
    variable: str
    solution_text: str
    message: str
    account: AccountView


def _entitlement_info(ent: Entitlement) -> EntitlementInfo:
    return EntitlementInfo(subscribed=ent.subscribed, expires_at=ent.expires_at,
                           free_uses_remaining=ent.free_uses_remaining,
                           can_solve=ent.can_solve)


def _account_view(record: AccountRecord, ent: Entitlement) -> AccountView:
    return AccountView(
        email=record.email,
        name=record.name,
        subscription_plan=record.subscription_plan,
        subscription_started_at=record.subscription_started_at,
        free_uses_consumed=record.free_uses_consumed,
        entitlement=_entitlement_info(ent),
    )


def create_app(store: Optional[AccountStore] = None,
               service: Optional[SolveService] = None) -> FastAPI:
    config.configure_logging()
    store = store or AccountStore()
    service = service or SolveService(store)

    app = FastAPI(title="MathGPT Photosolver API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _view(record: AccountRecord) -> AccountView:
        return _account_view(record, service.entitlement(record.email))

    @app.get("/api/plans", response_model=list[PlanInfo])
    def plans():
        return [
            PlanInfo(plan=plan, label=spec.label, duration_months=spec.duration_months,
                     price=spec.price, currency=spec.currency,
                     display_price=format_price(plan))
            for plan, spec in PLANS.items()
        ]

    @app.post("/api/accounts", response_model=AccountView, status_code=201)
    def register(req: RegisterRequest):
        try:
            record = store.register_account(req.name, req.email, req.password)
        except AccountError as e:
            status = 409 if "already exists" in str(e) else 400
            raise HTTPException(status_code=status, detail=str(e))
        return _view(record)

    @app.post("/api/login", response_model=AccountView)
    def login(req: LoginRequest):
        try:
            record = store.authenticate(req.email, req.password)
        except AccountError as e:
            raise HTTPException(status_code=401, detail=str(e))
        return _view(record)

    @app.get("/api/accounts/{email}/entitlement", response_model=EntitlementInfo)
    def entitlement(email: str):
        try:
            return _entitlement_info(service.entitlement(email))
        except UnknownAccount:
            raise HTTPException(status_code=404, detail="User not found.")

    @app.post("/api/accounts/{email}/checkout", response_model=AccountView)
    def checkout(email: str, req: CheckoutRequest):
        if req.plan is SubscriptionPlan.NONE:
            raise HTTPException(status_code=400, detail="Choose a monthly or annual plan.")
        if req.status == "completed":
            if not req.reference:
                raise HTTPException(status_code=400, detail="A completed checkout needs a reference.")
            event = CheckoutCompleted(req.reference)
        elif req.status == "cancelled":
            event = CheckoutCancelled()
        else:
            raise HTTPException(status_code=400, detail=f"Unknown checkout status '{req.status}'.")
        try:
            record = apply_checkout(store, email, req.plan, event, datetime.now(timezone.utc))
        except KeyError:
            raise HTTPException(status_code=404, detail="User not found.")
        return _view(record)

    @app.post("/api/solve", response_model=SolveResponse)
    async def solve(req: SolveRequest):
        try:
            image = base64.b64decode(req.image_base64, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=400, detail="image_base64 is not valid base64.")
        if not image:
            raise HTTPException(status_code=400, detail="Image cannot be empty.")

        try:
            result = await service.solve(req.email, image)
        except UnknownAccount:
            raise HTTPException(status_code=404, detail="User not found.")
        except PipelineError as e:
            raise HTTPException(status_code=422,
                                detail={"category": e.kind.name, "message": e.message})

        if result.status is SolveStatus.DENIED:
            raise HTTPException(
                status_code=402,
                detail={
                    "message": "You have exhausted your free trial. "
                               "Please subscribe to continue using MathGPT.",
                    "plans": "/api/plans",
                },
            )

        outcome = result.outcome
        return SolveResponse(
            recognized_line=outcome.recognized_line,
            variable=outcome.variable,
            solution_text=outcome.solution_text,
            message=outcome.summary(),
            account=_account_view(result.account, result.entitlement),
        )

    return app


app = create_app()
