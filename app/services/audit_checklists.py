"""
NDIS Compliance Platform - Standard Audit Checklists

Default tick-box items offered on site visits and participant interviews.
"""

from typing import Iterable, List

from app.schemas.audit import ChecklistItem


# Documents sighted during a site visit
SITE_VISIT_DOCUMENT_CHECKLIST = [
    "Service Agreement / Tenancy Agreement",
    "Consent Form",
    "Risk Assessments (home/Participant/site)",
    "Support/Care plan (including BSP, mealtime and/or mod 1 care plans)",
    "Invoicing (two invoice samples each participant)",
    "Progress notes",
    "Goals",
    "Intake Form",
    "Emergency and Disaster planning for the participant",
    "Medication chart/record (if applicable)",
    "Staff roster/sign-in records",
    "Incident reports (if applicable)",
]

# Participant interview prompts
PARTICIPANT_FEEDBACK_CHECKLIST = [
    "Participants received Welcome pack",
    "Copies of Service Agreements, Plans provided",
    "Culture and Individual beliefs/values respected",
    "Privacy and confidentiality explained",
    "Informed of any changes/updates",
    "Incident management explained",
    "Complaints explained/supported including to the commission",
    "Feel confident to raise issues with provider",
    "Emergency and Disaster planning",
    "Treated with dignity and respect",
    "Choice and control respected",
    "Goals and preferences understood",
]

SAFETY_ITEMS_CHECKLIST = [
    "Fire extinguisher present and in date",
    "Smoke detectors present and operational",
    "First aid kit available and stocked",
    "Emergency evacuation plan displayed",
    "Emergency exits clearly marked",
    "Medication storage secure (if applicable)",
    "Chemical storage secure (if applicable)",
    "Manual handling equipment available (if required)",
    "WHS signage displayed",
    "COVID-safe measures in place",
]


def initialize_checklist(items: Iterable[str]) -> List[ChecklistItem]:
    """Fresh, unticked checklist for the given item labels."""
    return [ChecklistItem(item=item, checked=False, partial=False) for item in items]
