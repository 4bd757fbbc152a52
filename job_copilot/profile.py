from __future__ import annotations

import time
import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Stored and served with camelCase keys, used with snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProfileMeta(CamelModel):
    version: str = "1.0.0"
    last_updated: int = Field(default_factory=_now_ms)


class Location(CamelModel):
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "United States"


class Urls(CamelModel):
    linkedin: Optional[str] = None
    github: Optional[str] = None
    portfolio: Optional[str] = None


class ResumeFile(CamelModel):
    file_name: str
    file_data: str
    uploaded_at: int = Field(default_factory=_now_ms)


class Basics(CamelModel):
    first_name: str = ""
    last_name: str = ""
    full_name: str = ""
    first_name_native: Optional[str] = ""
    last_name_native: Optional[str] = ""
    preferred_name: str = ""
    email: str = ""
    phone: str = ""
    phone_type: Optional[str] = "Mobile"
    location: Location = Field(default_factory=Location)
    urls: Urls = Field(default_factory=Urls)
    resume_pdf: Optional[ResumeFile] = None


class Education(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    school_name: str = ""
    degree: str = ""
    major: str = ""
    gpa: Optional[str] = None
    start_date: str = ""
    end_date: str = ""


class Experience(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    company_name: str = ""
    position_title: str = ""
    location: Optional[str] = None
    start_date: str = ""
    end_date: str = ""
    is_current: bool = False
    description: str = ""


class Sponsorship(CamelModel):
    require_now: bool = False
    require_future: bool = True


class WorkAuthorization(CamelModel):
    authorized: bool = True
    type: str = "OPT"


class VisaStatus(CamelModel):
    type: str = "F-1"
    sponsorship: Sponsorship = Field(default_factory=Sponsorship)
    work_authorization: WorkAuthorization = Field(default_factory=WorkAuthorization)


class Demographics(CamelModel):
    gender: str = "Decline to identify"
    race: str = "Decline to identify"
    veteran: str = "Decline to identify"
    disability: str = "Decline to identify"


class Legal(CamelModel):
    citizenship_status: str = "Foreign National"
    visa_status: VisaStatus = Field(default_factory=VisaStatus)
    demographics: Demographics = Field(default_factory=Demographics)


class Salary(CamelModel):
    expected: float = 0
    currency: str = "USD"


class LocationPreferences(CamelModel):
    remote: bool = True
    onsite: bool = True
    relocation: bool = True


class Preferences(CamelModel):
    salary: Salary = Field(default_factory=Salary)
    location: LocationPreferences = Field(default_factory=LocationPreferences)
    start_date: str = "Immediate"


class UserProfile(CamelModel):
    meta: ProfileMeta = Field(default_factory=ProfileMeta)
    basics: Basics = Field(default_factory=Basics)
    education: List[Education] = Field(default_factory=list)
    experience: List[Experience] = Field(default_factory=list)
    legal: Legal = Field(default_factory=Legal)
    preferences: Preferences = Field(default_factory=Preferences)


class AppSettings(CamelModel):
    model: Literal["gpt-4o-mini", "gpt-4-turbo"] = "gpt-4o-mini"
    language: Literal["en", "zh"] = "en"
    auto_submit: bool = False


def default_profile() -> UserProfile:
    return UserProfile()
