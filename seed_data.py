"""Seed dataset written on first start."""

from __future__ import annotations

from formkit.ids import now_iso
from formkit.settings import merge_settings

SEED_WORKSPACE_ID = "workspace-demo"
SEED_FORM_ID = "landscaping-daily-log"
SEED_OWNER_ID = "user-owner"
DEFAULT_COLOR = "#38bdf8"


def _options(*pairs: tuple[str, str]) -> list[dict]:
    return [{"value": value, "label": label} for value, label in pairs]


def seed_packages() -> list[dict]:
    now = now_iso()
    return [
        {
            "id": "package-starter",
            "name": "Starter",
            "description": "Up to 5 forms, 500 submissions/month. Perfect for solo operators.",
            "priceMonthly": 19,
            "priceAnnual": 199,
            "formLimit": 5,
            "submissionLimit": 500,
            "createdAt": now,
            "updatedAt": now,
        },
        {
            "id": "package-growth",
            "name": "Growth",
            "description": "Up to 25 forms, 5,000 submissions/month. Includes team dashboards.",
            "priceMonthly": 49,
            "priceAnnual": 499,
            "formLimit": 25,
            "submissionLimit": 5000,
            "createdAt": now,
            "updatedAt": now,
        },
        {
            "id": "package-pro",
            "name": "Pro",
            "description": "Unlimited forms & submissions with priority support.",
            "priceMonthly": 99,
            "priceAnnual": 999,
            "formLimit": None,
            "submissionLimit": None,
            "createdAt": now,
            "updatedAt": now,
        },
    ]


def seed_workspaces() -> list[dict]:
    now = now_iso()
    return [
        {
            "id": SEED_WORKSPACE_ID,
            "name": "Demo Landscaping Workspace",
            "slug": "demo-landscaping",
            "ownerId": SEED_OWNER_ID,
            "packageId": "package-pro",
            "color": DEFAULT_COLOR,
            "createdAt": now,
            "updatedAt": now,
        }
    ]


def seed_users() -> list[dict]:
    now = now_iso()
    return [
        {
            "id": SEED_OWNER_ID,
            "name": "Workspace Owner",
            "email": "owner@landscape.app",
            "passwordHash": "$2b$10$0vesfnf.l89JlJ8jCSf85Os4H.VCmvLR5RNfuAoGrQV0HNNaHovD6",
            "role": "owner",
            "workspaceId": SEED_WORKSPACE_ID,
            "createdAt": now,
            "updatedAt": now,
        }
    ]


def seed_form() -> dict:
    """The landscaping daily service log; its share key is drawn on load."""
    now = now_iso()
    crew_green_ways = _options(("jordan", "Jordan Ellis"), ("sky", "Sky Chen"), ("drew", "Drew Patel"))
    crew_evergreen = _options(("nina", "Nina Gomez"), ("hassan", "Hassan Price"))
    return {
        "id": SEED_FORM_ID,
        "workspaceId": SEED_WORKSPACE_ID,
        "name": "Landscaping Daily Service Log",
        "slug": "landscaping-daily-service-log",
        "description": (
            "Capture daily visit details for billing and quality tracking. "
            "Configure crews, services, and materials used."
        ),
        "version": 1,
        "isPublished": True,
        "visibility": "public",
        "shareKey": None,
        "fields": [
            {
                "id": "company",
                "type": "select",
                "label": "Company",
                "required": True,
                "placeholder": "Select company",
                "options": _options(("green-ways", "Green Ways Landscaping"), ("evergreen", "Evergreen Grounds Co.")),
            },
            {
                "id": "crewMember",
                "type": "select",
                "label": "Crew Member",
                "required": True,
                "placeholder": "Who completed the visit?",
                "options": crew_green_ways + crew_evergreen,
                "conditionalGroups": [
                    {"when": {"field": "company", "equals": "green-ways"}, "options": crew_green_ways},
                    {"when": {"field": "company", "equals": "evergreen"}, "options": crew_evergreen},
                ],
            },
            {
                "id": "property",
                "type": "select",
                "label": "Property / Site",
                "required": True,
                "placeholder": "Select property",
                "options": _options(
                    ("prop-fairview", "Fairview Corporate Campus"),
                    ("prop-lakewood", "Lakewood HOA - Phase 2"),
                    ("prop-summit", "Summit Heights Medical"),
                    ("prop-hillside", "Hillside Retail Plaza"),
                    ("prop-maple", "Maple Ridge Apartments"),
                ),
            },
            {"id": "serviceDate", "type": "date", "label": "Service Date", "required": True},
            {"id": "startTime", "type": "time", "label": "Arrival Time", "required": True},
            {"id": "endTime", "type": "time", "label": "Departure Time", "required": True},
            {
                "id": "services",
                "type": "checkbox-group",
                "label": "Services Performed",
                "required": True,
                "options": _options(
                    ("mowing", "Mowing"),
                    ("trimming", "String Trimming"),
                    ("edging", "Edging"),
                    ("blowing", "Leaf Blowing"),
                    ("pruning", "Shrub Pruning"),
                    ("beds", "Bed Maintenance"),
                    ("fert", "Fertilization"),
                    ("irrigation", "Irrigation Check"),
                    ("seasonal", "Seasonal Cleanup"),
                ),
            },
            {
                "id": "materialsUsed",
                "type": "textarea",
                "label": "Materials Used",
                "placeholder": "Mulch bags, fertilizer, replacement plants, etc.",
            },
            {
                "id": "siteNotes",
                "type": "textarea",
                "label": "Site Notes / Issues",
                "placeholder": "Gates locked, irrigation leaks, customer requests…",
            },
            {
                "id": "followUps",
                "type": "textarea",
                "label": "Follow-Up Actions Needed",
                "placeholder": "Schedule aeration, quote seasonal plantings…",
            },
            {
                "id": "status",
                "type": "select",
                "label": "Status",
                "required": True,
                "defaultValue": "completed",
                "options": _options(
                    ("completed", "Completed"),
                    ("needs-attention", "Needs Attention"),
                    ("customer-hold", "Customer Hold"),
                ),
            },
            {
                "id": "customerSignature",
                "type": "text",
                "label": "Customer Signature (optional)",
                "placeholder": "Type name if collected",
            },
            {
                "id": "photos",
                "type": "image-upload",
                "label": "Upload Photos",
                "accepts": ["image/png", "image/jpeg", "image/webp"],
                "multiple": True,
            },
        ],
        "settings": merge_settings({"branding": {"logoUrl": "/assets/logo.svg"}}),
        "createdAt": now,
        "updatedAt": now,
    }


def default_dataset() -> dict:
    return {
        "workspaces": seed_workspaces(),
        "forms": [seed_form()],
        "packages": seed_packages(),
        "users": seed_users(),
        "submissions": [],
    }
