from datetime import datetime

from pydantic import BaseModel, Field


class CredentialsRequest(BaseModel):
    Email: str = Field(..., min_length=3, max_length=254)
    Password: str = Field(..., min_length=1, max_length=200)


class RefreshRequest(BaseModel):
    RefreshToken: str = Field(..., max_length=400)


class SessionUserOut(BaseModel):
    Id: int
    Email: str


class SessionResponse(BaseModel):
    AccessToken: str
    RefreshToken: str
    TokenType: str = "bearer"
    ExpiresIn: int
    User: SessionUserOut


class SignUpResponse(BaseModel):
    Message: str
    User: SessionUserOut


class ProfileOut(BaseModel):
    Id: int
    Email: str
    CreatedAt: datetime
