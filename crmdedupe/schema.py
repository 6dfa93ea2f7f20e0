from typing import Any, Dict, List, NamedTuple, Optional

PERSON = "person"
ORGANIZATION = "organization"
ENTITY_KINDS = (PERSON, ORGANIZATION)

# Properties read for each entity kind
CONTACT_PROPERTIES = [
    "firstname",
    "lastname",
    "email",
    "phone",
    "mobilephone",
    "hs_analytics_last_timestamp",
    "company",
]
COMPANY_PROPERTIES = [
    "name",
    "domain",
    "website",
    "createdate",
    "hs_is_merged",
]
PHONE_FIELDS = [
    "phone",
    "mobilephone",
    "hq_phone_number",
    "alt_phone_number",
]

# Run statuses
STATUS_NO_MATCH = "no_match"
STATUS_AMBIGUOUS = "ambiguous"
STATUS_MERGED = "merged"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"

# Per-target merge statuses
MERGE_MERGED = "merged"
MERGE_FAILED = "failed"
MERGE_SKIPPED = "skipped"


class Record(NamedTuple):
    """A CRM object as returned by the store: id, entity kind, raw properties."""

    id: str
    kind: str
    properties: Dict[str, Optional[str]]

    def get(self, field: str) -> Optional[str]:
        return self.properties.get(field)


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_contact_input(properties: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means the
    contact has enough data to be matched.
    """
    errors: List[str] = []
    for f in ("firstname", "lastname"):
        if not _is_non_empty_str(properties.get(f)):
            errors.append(f"Field '{f}' must be a non-empty string")
    return errors


def validate_company_input(fields: Dict[str, Any]) -> List[str]:
    """
    Validate the field bundle a company run starts from.

    Only the object id is required; the remaining fields are fetched from
    the store when absent.
    """
    errors: List[str] = []
    company_id = fields.get("hs_object_id")
    if company_id is None or str(company_id).strip() == "":
        errors.append("Missing required field: hs_object_id")
    elif not str(company_id).strip().isdigit():
        errors.append("Field 'hs_object_id' must be numeric")

    for f in COMPANY_PROPERTIES:
        if f in fields and fields[f] is not None and not isinstance(fields[f], str):
            errors.append(f"Field '{f}' must be a string if provided")
    return errors
