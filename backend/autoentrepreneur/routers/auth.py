from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import select

from autoentrepreneur import schemas
from autoentrepreneur import models
from autoentrepreneur.auth_utils import get_password_hash, verify_password, create_access_token
from autoentrepreneur.db import database, run_read, run_write
from autoentrepreneur.deps import get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=schemas.Token)
async def register(payload: schemas.UserCreate):
    user_tbl = models.User.__table__
    email = payload.email.lower()

    existing = await run_read(lambda: database.fetch_one(
        select(user_tbl.c.id).where(user_tbl.c.email == email)
    ))
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    hashed = get_password_hash(payload.password)
    user_id = await run_write(lambda: database.execute(
        user_tbl.insert().values(
            email=email, hashed_password=hashed, first_name=payload.first_name, last_name=payload.last_name,
        )
    ))
    return {"access_token": create_access_token(user_id=user_id, email=email)}

@router.post("/login", response_model=schemas.Token)
async def login(payload: schemas.UserLogin):
    user_tbl = models.User.__table__
    row = await run_read(lambda: database.fetch_one(
        select(user_tbl).where(user_tbl.c.email == payload.email.lower())
    ))
    if not row or not verify_password(payload.password, row["hashed_password"]):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return {"access_token": create_access_token(user_id=row["id"], email=row["email"])}

@router.get("/me", response_model=schemas.MeOut)
async def me(user=Depends(get_current_user)):
    return {"id": user["id"], "email": user["email"]}
