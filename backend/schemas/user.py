from pydantic import EmailStr, Field

from schemas.base import APIModel


# Schema for user registration requests
class UserCreate(APIModel):
    email: EmailStr
    password: str = Field(min_length=6)


# Schema for user authentication credentials
class UserLogin(APIModel):
    email: str
    password: str


# Output schema for user profile details
class UserResponse(APIModel):
    id: str
    email: str
    email_verified: bool


# Login response: bearer token plus the public user profile
class LoginResponse(APIModel):
    token: str
    user: UserResponse


class AdminLogin(APIModel):
    password: str = ""


class AdminToken(APIModel):
    token: str


class RegisterResponse(APIModel):
    message: str
