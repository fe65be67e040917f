from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .services.identity import SupabaseAuthClient
from .services.payment_gateway import PaymentGateway


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_identity_client(request: Request) -> SupabaseAuthClient:
    client = getattr(request.app.state, "identity_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Auth provider is not configured",
        )
    return client


Gateway = Annotated[PaymentGateway, Depends(get_payment_gateway)]
IdentityClient = Annotated[SupabaseAuthClient, Depends(get_identity_client)]
