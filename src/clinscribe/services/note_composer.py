from typing import List
from .clinical_note_service import SOAP_NOTE_ERROR
from .prescription_service import PRESCRIPTION_ERROR

STAGE_SENTINELS = {
    "clinical_note": SOAP_NOTE_ERROR,
    "prescription": PRESCRIPTION_ERROR,
}


def compose(note: str, plan: str) -> str:
    """Final clinical record: note, blank line, plan."""
    return f"{note}\n\n{plan}"


def degraded_sections(note: str, plan: str) -> List[str]:
    """Names of the stages whose output is their failure sentinel."""
    outputs = {"clinical_note": note, "prescription": plan}
    return [stage for stage, sentinel in STAGE_SENTINELS.items() if outputs[stage].strip() == sentinel]
