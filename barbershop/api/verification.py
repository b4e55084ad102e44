from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from barbershop.api.deps import get_verifier
from barbershop.services.verification import PhoneVerifier

router = APIRouter()


class CodeRequest(BaseModel):
    phone: str = Field(..., max_length=20)


class CodeCheck(BaseModel):
    phone: str = Field(..., pattern=r"^05\d{8}$")
    code: str = Field(..., max_length=6)


@router.post("/request")
def request_verification_code(
    payload: CodeRequest, verifier: PhoneVerifier = Depends(get_verifier)
):
    verifier.request_code(payload.phone)
    return {"ok": True}


@router.post("/verify")
def verify_code(payload: CodeCheck, verifier: PhoneVerifier = Depends(get_verifier)):
    """Standalone code check; booking uses the code directly instead"""
    verifier.verify(payload.phone, payload.code)
    return {"ok": True}
