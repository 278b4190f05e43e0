"""Pattern tables used by the subject pre-filter and the board detector.

Pure data: every table here is either a tuple of compiled regexes or a tuple
of lowercase literals. Classification code imports these names and never
declares its own literals, so the tables can change (and be tested) without
touching control flow.
"""

from __future__ import annotations

import re

_I = re.IGNORECASE


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, _I) for p in patterns)


# ── Stage 1: subject deny-list ────────────────────────────

SUBJECT_SKIP_PATTERNS: tuple[re.Pattern[str], ...] = _compile(
    # Job board notifications and alerts
    r"\d+\s*(new\s*)?jobs?\s*(for\s*you|matching|alert|notification|found)",
    r"job\s*alert",
    r"daily\s*job\s*(digest|update|alert)",
    r"weekly\s*job\s*(digest|update|summary)",
    r"job\s*recommendations",
    r"recommended\s*jobs?",
    r"jobs?\s*you\s*might\s*like",
    r"latest\s*jobs?",
    r"trending\s*jobs?",
    # Newsletters and marketing
    r"newsletter",
    r"unsubscribe",
    r"career\s*tips",
    r"job\s*search\s*tips",
    r"resume\s*tips",
    r"interview\s*tips",
    r"salary\s*guide",
    r"company\s*spotlight",
    # Generic hiring announcements
    r"now\s*hiring",
    r"we['’]re\s*hiring",
    r"join\s*our\s*team",
    r"career\s*opportunities",
    r"open\s*positions",
    r"job\s*openings",
    # Promotions
    r"free\s*course",
    r"limited\s*time",
    r"special\s*offer",
    r"premium\s*subscription",
)

# Two or more of these in one subject is a digest, not an application.
BIG_TECH_EMPLOYERS: tuple[str, ...] = (
    "google",
    "microsoft",
    "amazon",
    "apple",
    "meta",
    "netflix",
)
BIG_TECH_RE: re.Pattern[str] = re.compile(
    r"\b(" + "|".join(BIG_TECH_EMPLOYERS) + r")\b", _I
)

# ── Stage 1: subject allow-list ───────────────────────────

SUBJECT_APPLICATION_PATTERNS: tuple[re.Pattern[str], ...] = _compile(
    # Confirmations
    r"application\s*received",
    r"received\s*your\s*application",
    r"thank\s*you\s*for\s*applying",
    r"thank\s*you\s*for\s*your\s*application",
    r"application\s*confirmation",
    r"application\s*submitted",
    r"application\s*complete",
    # Interviews
    r"interview\s*(invitation|scheduled|request|opportunity)",
    r"phone\s*screen",
    r"technical\s*interview",
    r"next\s*round",
    r"final\s*round",
    # Status updates
    r"application\s*status",
    r"update\s*on\s*your\s*application",
    r"regarding\s*your\s*application",
    r"application\s*under\s*review",
    r"reviewing\s*your\s*application",
    # Offers and rejections
    r"offer\s*(letter|extended)",
    r"job\s*offer",
    r"congratulations",
    r"not\s*moving\s*forward",
    r"decided\s*to\s*pursue\s*other\s*candidates",
    r"will\s*not\s*be\s*proceeding",
    r"application\s*unsuccessful",
    r"other\s*applicants",
    r"not\s*selected",
    r"after\s*careful\s*review",
    r"carefully\s*considered\s*your\s*application",
    # Follow-ups
    r"complete\s*your\s*application",
    r"application\s*incomplete",
    r"additional\s*information\s*needed",
    # Personalized references
    r"your\s*application\s*with",
    r"your\s*.*\s*application",
)

# Fallback: "application" plus one of these tokens still earns a look.
APPLICATION_CONTEXT_TOKENS: tuple[str, ...] = ("your", "regarding", "update", "status")

# ── Job-board senders ─────────────────────────────────────

JOB_BOARD_DOMAINS: tuple[str, ...] = (
    "ziprecruiter",
    "indeed",
    "monster",
    "glassdoor",
    "dice",
    "careerbuilder",
    "linkedin",
    "seek",
    "simplyhired",
    "flexjobs",
    "remote.co",
    "angellist",
    "nineztech",
    "cyberseek",
    "usajobs",
    "clearancejobs",
    "hired.com",
)

EXTENDED_JOB_BOARD_DOMAINS: tuple[str, ...] = JOB_BOARD_DOMAINS + (
    "wellfound",
    "crunchboard",
    "startupjobs",
    "remoteok",
    "weworkremotely",
    "joblist",
    "techjobsuk",
    "stackoverflow.jobs",
    "github.jobs",
    "devjobs",
    "honeypot.io",
    "talent.com",
    "recruit.net",
    "jobbank",
    "workopolis",
    "eluta",
    "jobillico",
    "neuvoo",
    "adzuna",
    "jobsora",
    "jooble",
)

# ── Stage 2: marketing / aggregation content ──────────────

BOARD_MARKETING_PATTERNS: tuple[re.Pattern[str], ...] = _compile(
    # Alerts and digests
    r"\d+\s*(new\s*)?jobs?\s*(for\s*you|matching|alert|notification|found|available|posted)",
    r"job\s*(alert|notification|digest|update|report|summary)",
    r"(daily|weekly|monthly)\s*job\s*(alert|digest|update|summary)",
    r"jobs?\s*(you\s*might\s*like|recommended|matching\s*your)",
    r"latest\s*jobs?",
    r"trending\s*jobs?",
    r"new\s*opportunities",
    # Marketing content
    r"newsletter",
    r"unsubscribe",
    r"career\s*(tips|advice|guide)",
    r"resume\s*(tips|builder|help)",
    r"interview\s*(tips|preparation|guide)",
    r"salary\s*(guide|survey|data|info)",
    r"company\s*(reviews|spotlight|profiles)",
    r"career\s*fair",
    r"networking\s*event",
    # Generic recruitment
    r"now\s*hiring",
    r"we['’]re\s*hiring",
    r"join\s*our\s*team",
    r"career\s*opportunities",
    r"open\s*positions",
    r"job\s*(openings|vacancies)",
    r"hiring\s*(event|fair)",
    r"talent\s*pool",
    # Listing many jobs
    r"view\s*(all\s*)?\d+\s*jobs?",
    r"see\s*more\s*jobs?",
    r"browse\s*(all\s*)?jobs?",
    r"(amazon|google|microsoft|apple|meta|netflix|tesla).*and\s*\d+\s*more",
    # Promotions
    r"free\s*(course|trial|membership|access)",
    r"limited\s*time",
    r"special\s*offer",
    r"premium\s*(subscription|membership|access)",
    r"upgrade\s*now",
    r"get\s*started",
    # Agency spam
    r"hundreds?\s*of\s*jobs?",
    r"thousands?\s*of\s*jobs?",
    r"best\s*jobs?",
    r"top\s*jobs?",
    r"hot\s*jobs?",
    r"urgent\s*hiring",
    # Footer boilerplate
    r"if\s*you\s*no\s*longer\s*wish\s*to\s*receive",
    r"you\s*are\s*receiving\s*this\s*because",
    r"manage\s*your\s*email\s*preferences",
)

AGGREGATION_PHRASES: tuple[str, ...] = (
    "based on your search",
    "matching your criteria",
    "similar to jobs you",
    "you may also be interested",
    "other jobs you might like",
    "recommended for you",
    "personalized job recommendations",
    "your job search",
    "job search results",
    "find more jobs",
)

# ── Stage 2: density vocabularies ─────────────────────────

JOB_TITLE_WORDS: tuple[str, ...] = (
    "engineer",
    "developer",
    "manager",
    "analyst",
    "coordinator",
    "specialist",
    "associate",
    "intern",
    "designer",
    "architect",
    "consultant",
    "director",
    "lead",
    "senior",
    "junior",
    "principal",
)

COMPANY_SUFFIX_WORDS: tuple[str, ...] = (
    "inc",
    "corp",
    "ltd",
    "llc",
    "company",
    "technologies",
    "solutions",
)

JOB_TITLE_DENSITY_RE: re.Pattern[str] = re.compile(
    r"\b(?:" + "|".join(JOB_TITLE_WORDS) + r")\b", _I
)
COMPANY_SUFFIX_DENSITY_RE: re.Pattern[str] = re.compile(
    r"\b(?:" + "|".join(COMPANY_SUFFIX_WORDS) + r")\b", _I
)

MAX_JOB_TITLE_MENTIONS = 4
MAX_COMPANY_SUFFIX_MENTIONS = 3

# ── Extraction ────────────────────────────────────────────

CONSUMER_MAIL_DOMAINS: tuple[str, ...] = (
    "gmail",
    "googlemail",
    "yahoo",
    "outlook",
    "hotmail",
    "live.com",
    "icloud",
    "aol",
    "protonmail",
)

# Applicant-tracking vendors send on behalf of the employer; their domain is
# never the company name, so the display name is used instead.
ATS_SENDER_DOMAINS: tuple[str, ...] = (
    "greenhouse",
    "lever.co",
    "myworkday",
    "workday",
    "icims",
    "smartrecruiters",
    "jobvite",
    "ashbyhq",
    "workable",
    "taleo",
    "successfactors",
)

# Mail-service subdomains stripped before taking the first label.
SENDER_SUBDOMAIN_PREFIXES: tuple[str, ...] = (
    "mail",
    "email",
    "notifications",
    "notify",
    "careers",
    "jobs",
    "talent",
    "hr",
    "recruiting",
)

SENDER_NOISE_RE: re.Pattern[str] = re.compile(r"no-?reply|donotreply", _I)

COMPANY_SUFFIX_RE: re.Pattern[str] = re.compile(
    r"\s+(inc|corp|ltd|llc|careers|jobs|talent|hr|recruiting)\.?$", _I
)

COMMON_TITLE_NOUNS: tuple[str, ...] = (
    "software engineer",
    "developer",
    "analyst",
    "manager",
    "coordinator",
    "specialist",
    "associate",
)

# ── Source-side search (performance pre-filter only) ──────

SOURCE_SEARCH_KEYWORDS: tuple[str, ...] = (
    # Confirmations
    "application received",
    "received your application",
    "thank you for applying",
    "application confirmation",
    "application submitted",
    "thank you for your application",
    # Interviews
    "interview invitation",
    "interview scheduled",
    "phone screen",
    "technical interview",
    "next round",
    "final round",
    "interview request",
    "interview opportunity",
    # Status updates
    "application status",
    "update on your application",
    "regarding your application",
    "application under review",
    "reviewing your application",
    # Offers and rejections
    "offer letter",
    "job offer",
    "offer extended",
    "congratulations",
    "not moving forward",
    "decided to pursue other candidates",
    "will not be proceeding",
    "application unsuccessful",
    "other applicants",
    "not selected",
    # Follow-ups
    "complete your application",
    "application incomplete",
    "additional information needed",
)

SOURCE_EXCLUDED_SENDERS: tuple[str, ...] = (
    "noreply@linkedin.com",
    "noreply@indeed.com",
    "alerts@glassdoor.com",
    "jobs@ziprecruiter.com",
    "noreply@monster.com",
    "notifications@dice.com",
    "jobsearch@careerbuilder.com",
)
