from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .common import CamelModel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

class Role(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"

class SignupRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=6)
    role: Role

class LoginRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str

class PersonalInfo(CamelModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    country: Optional[str] = None
    picture_url: Optional[str] = None
    languages: Optional[List[str]] = None

class ProfessionalInfo(CamelModel):
    skills: Optional[List[str]] = None
    education: Optional[List[str]] = None
    certifications: Optional[List[str]] = None
    company_name: Optional[str] = None
    company_info: Optional[str] = None
    company_link: Optional[str] = None
    past_projects: Optional[List[str]] = None

class ProfileUpdate(CamelModel):
    personal: PersonalInfo
    professional: Optional[ProfessionalInfo] = None
    user_type: Role

class UserSummary(CamelModel):
    id: int
    name: str
    email: str
    role: str
    picture_url: Optional[str] = None

class Profile(CamelModel):
    bio: Optional[str] = ""
    country: Optional[str] = ""
    picture_url: Optional[str] = ""
    languages: List[str] = []
    skills: List[str] = []
    education: List[str] = []
    certifications: List[str] = []
    company_name: Optional[str] = ""
    company_info: Optional[str] = ""
    company_link: Optional[str] = ""
    past_projects: List[str] = []

class UserOut(CamelModel):
    id: int
    name: str
    email: str
    role: str
    last_login: Optional[datetime] = None
    total_earnings: float = 0
    active_projects: int = 0
    total_orders: int = 0

def user_out(user) -> dict:
    data = UserOut.model_validate(user).model_dump(mode="json", by_alias=True)
    data["profile"] = Profile.model_validate(user).model_dump(mode="json", by_alias=True)
    return data
