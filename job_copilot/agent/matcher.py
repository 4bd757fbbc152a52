"""Deterministic label -> profile value rules.

Labels are normalized (lower-cased, non-alphanumerics removed) and run against
``MATCH_RULES`` in order. The order is load-bearing: broad substrings such as
``name`` or ``state`` must come after the specific rules that contain them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..profile import UserProfile
from .scanner import ScannedField

NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class MatchRule:
    name: str
    predicate: Callable[[str], bool]
    resolve: Callable[[UserProfile], object]


def normalize_label(label: str) -> str:
    return NON_ALNUM.sub("", (label or "").lower())


def _has_any(*needles: str) -> Callable[[str], bool]:
    return lambda label: any(needle in label for needle in needles)


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _latest(items: Sequence, attribute: str):
    if not items:
        return None
    return getattr(items[-1], attribute)


def _full_name(profile: UserProfile) -> str:
    basics = profile.basics
    return basics.full_name or f"{basics.first_name} {basics.last_name}".strip()


def _salary(profile: UserProfile) -> str:
    expected = profile.preferences.salary.expected
    if expected <= 0:
        return ""
    return str(int(expected)) if float(expected).is_integer() else str(expected)


def _sponsorship_future(profile: UserProfile) -> str:
    return _yes_no(profile.legal.visa_status.sponsorship.require_future)


MATCH_RULES: tuple[MatchRule, ...] = (
    MatchRule(
        "preferred_name",
        lambda label: "nickname" in label or ("preferred" in label and "name" in label),
        lambda p: p.basics.preferred_name or p.basics.first_name,
    ),
    MatchRule(
        "first_name",
        lambda label: "firstname" in label or label == "first" or "givenname" in label,
        lambda p: p.basics.first_name,
    ),
    MatchRule(
        "last_name",
        lambda label: "lastname" in label or label == "last" or "familyname" in label or "surname" in label,
        lambda p: p.basics.last_name,
    ),
    MatchRule("full_name", lambda label: label == "name" or "fullname" in label, _full_name),
    MatchRule("email", _has_any("email"), lambda p: p.basics.email),
    MatchRule("phone_type", lambda label: "phone" in label and "type" in label, lambda p: p.basics.phone_type),
    MatchRule("phone", _has_any("phone", "mobile", "contact"), lambda p: p.basics.phone),
    MatchRule("linkedin", _has_any("linkedin"), lambda p: p.basics.urls.linkedin),
    MatchRule(
        "website",
        _has_any("website", "portfolio", "url"),
        lambda p: p.basics.urls.portfolio or p.basics.urls.github,
    ),
    MatchRule(
        "address",
        lambda label: "address" in label and "email" not in label,
        lambda p: p.basics.location.address,
    ),
    MatchRule("city", _has_any("city"), lambda p: p.basics.location.city),
    MatchRule("zip", _has_any("zip", "postal"), lambda p: p.basics.location.zip_code),
    MatchRule("state", _has_any("state", "province"), lambda p: p.basics.location.state),
    MatchRule("country", _has_any("country"), lambda p: p.basics.location.country),
    MatchRule("citizenship", _has_any("citizenship", "citizen"), lambda p: p.legal.citizenship_status),
    MatchRule("visa", _has_any("visatype", "visastatus", "visa"), lambda p: p.legal.visa_status.type),
    MatchRule(
        "work_authorization",
        lambda label: any(n in label for n in ("authorizedtowork", "workauthorization", "authorized"))
        or ("work" in label and "author" in label),
        lambda p: _yes_no(p.legal.visa_status.work_authorization.authorized),
    ),
    MatchRule(
        "work_authorization_type",
        _has_any("workauthtype", "workpermittype"),
        lambda p: p.legal.visa_status.work_authorization.type,
    ),
    MatchRule(
        "sponsorship_now",
        lambda label: "sponsorshipnow" in label
        or "requiresponsorshipnow" in label
        or ("sponsor" in label and "now" in label),
        lambda p: _yes_no(p.legal.visa_status.sponsorship.require_now),
    ),
    MatchRule(
        "sponsorship_future",
        lambda label: "sponsorshipfuture" in label
        or "requiresponsorshipfuture" in label
        or ("sponsor" in label and ("future" in label or "will" in label)),
        _sponsorship_future,
    ),
    # Ambiguous wording: answer for the future, which is the stricter case.
    MatchRule("sponsorship", _has_any("sponsorship", "requiresponsor"), _sponsorship_future),
    MatchRule("gender", _has_any("gender"), lambda p: p.legal.demographics.gender),
    MatchRule("race", _has_any("race", "ethnicity"), lambda p: p.legal.demographics.race),
    MatchRule("veteran", _has_any("veteran"), lambda p: p.legal.demographics.veteran),
    MatchRule("disability", _has_any("disability"), lambda p: p.legal.demographics.disability),
    MatchRule("salary_currency", _has_any("currency"), lambda p: p.preferences.salary.currency),
    MatchRule("salary", _has_any("salary", "compensation", "pay"), _salary),
    MatchRule(
        "remote",
        _has_any("remote", "workfromhome"),
        lambda p: _yes_no(p.preferences.location.remote),
    ),
    MatchRule("onsite", _has_any("onsite", "office"), lambda p: _yes_no(p.preferences.location.onsite)),
    MatchRule(
        "relocation",
        _has_any("relocation", "willingtorelocate"),
        lambda p: _yes_no(p.preferences.location.relocation),
    ),
    MatchRule(
        "start_date",
        _has_any("startdate", "available", "availability"),
        lambda p: p.preferences.start_date,
    ),
    MatchRule(
        "school",
        _has_any("school", "university", "college"),
        lambda p: _latest(p.education, "school_name"),
    ),
    MatchRule("degree", _has_any("degree"), lambda p: _latest(p.education, "degree")),
    MatchRule("major", _has_any("major", "fieldofstudy"), lambda p: _latest(p.education, "major")),
    MatchRule("gpa", _has_any("gpa"), lambda p: _latest(p.education, "gpa")),
    MatchRule("company", _has_any("company", "employer"), lambda p: _latest(p.experience, "company_name")),
    MatchRule(
        "position",
        _has_any("position", "title", "jobtitle"),
        lambda p: _latest(p.experience, "position_title"),
    ),
)


def find_rule(label: str) -> Optional[MatchRule]:
    normalized = normalize_label(label)
    if not normalized:
        return None
    for rule in MATCH_RULES:
        if rule.predicate(normalized):
            return rule
    return None


def match_field(field: ScannedField, profile: UserProfile) -> Optional[str]:
    """Resolve the profile value for a field, or None when no rule applies."""
    rule = find_rule(field.label)
    if rule is None:
        return None
    value = rule.resolve(profile)
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None
