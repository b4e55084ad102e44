from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel
from fastapi import Security
from barbershop.core.auth import (
    ADMIN_ROLE,
    authenticate_admin,
    create_access_token,
    verify_access_token,
)

router = APIRouter()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


class Token(BaseModel):
    access_token: str
    token_type: str


@router.post("/token", response_model=Token)
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    if not authenticate_admin(form_data.username, form_data.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(data={"sub": form_data.username, "role": ADMIN_ROLE})
    return Token(access_token=access_token, token_type="bearer")


class MeOut(BaseModel):
    username: str
    is_admin: bool = False


@router.get("/me", response_model=MeOut)
async def me(token: str = Security(oauth2_scheme)):
    payload = verify_access_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")
    return MeOut(username=payload.get("sub"), is_admin=payload.get("role") == ADMIN_ROLE)
