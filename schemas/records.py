"""
Pydantic schemas for Provider of Services rows with field-level coding rules.

Every CSV field goes through one of four codings:
- strings: sentinel suppression ("Not Applicable", "Not Available", blank -> None)
- numbers: sentinel suppression, then parse; parse failure or int4 overflow -> None
- dates: sentinel suppression, then YYYY-MM-DD or YYYYMMDD; otherwise None
- switches: "Yes" -> True, "No" -> False, anything else -> None

Only the certification number can make a row invalid.
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, Tuple, Any
from datetime import date, datetime

SENTINELS = frozenset({"not applicable", "not available"})
DATE_FORMATS = ("%Y-%m-%d", "%Y%m%d")

# Integer columns are int4
INT_MIN = -2 ** 31
INT_MAX = 2 ** 31 - 1

# Columns that may be absent from a file without failing it
OPTIONAL_COLUMNS = frozenset({"clia_lb_nb"})

AddressIdentity = Tuple[str, str, str, str]


def suppress_sentinel(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    if not text.strip() or text.strip().lower() in SENTINELS:
        return None
    return text


def parse_int(value: Any) -> Optional[int]:
    text = suppress_sentinel(value)
    if text is None:
        return None
    try:
        number = int(text)
    except ValueError:
        return None
    if not INT_MIN <= number <= INT_MAX:
        return None
    return number


def parse_float(value: Any) -> Optional[float]:
    text = suppress_sentinel(value)
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    text = suppress_sentinel(value)
    if text is None:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_yes_no(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    text = str(value).lower()
    if text == "yes":
        return True
    if text == "no":
        return False
    return None


class AddressRecord(BaseModel):
    """Address part of a POS row. Every field is optional."""

    street_address: Optional[str] = Field(None, alias="st_adr")
    city: Optional[str] = Field(None, alias="city_name")
    state_code: Optional[str] = Field(None, alias="state_cd")
    zip_code: Optional[str] = Field(None, alias="zip_cd")

    # Geographic codes
    ssa_county_code: Optional[str] = Field(None, alias="ssa_cnty_cd")
    ssa_state_code: Optional[str] = Field(None, alias="ssa_state_cd")
    state_region_code: Optional[str] = Field(None, alias="state_rgn_cd")
    region_code: Optional[str] = Field(None, alias="rgn_cd")
    fips_state_code: Optional[str] = Field(None, alias="fips_state_cd")
    fips_county_code: Optional[str] = Field(None, alias="fips_cnty_cd")
    cbsa_code: Optional[str] = Field(None, alias="cbsa_cd")
    cbsa_urban_rural_indicator: Optional[str] = Field(None, alias="cbsa_urbn_rrl_ind")

    @validator("*", pre=True)
    def clean_strings(cls, v):
        return suppress_sentinel(v)

    @property
    def identity(self) -> AddressIdentity:
        """Dedup key; matches COALESCE(col, '') in uq_addresses_identity."""
        return (
            self.street_address or "",
            self.city or "",
            self.state_code or "",
            self.zip_code or "",
        )

    @property
    def has_identity(self) -> bool:
        return any(self.identity)

    class Config:
        populate_by_name = True


class ProviderRecord(BaseModel):
    """
    Provider part of a POS row.

    address_id stays None until the deduplicated addresses are persisted
    and their surrogate keys are linked back.
    """

    # Identification
    cms_certification_number: str = Field(..., alias="prvdr_num")
    name: Optional[str] = Field(None, alias="fac_name")
    provider_subtype_id: Optional[int] = Field(None, alias="prvdr_sbtyp_id")
    medicaid_vendor_number: Optional[str] = Field(None, alias="mdcd_vndr_num")
    provider_type_id: Optional[int] = Field(None, alias="prvdr_type_id")

    address_id: Optional[int] = None

    # Dates
    original_participation_date: Optional[date] = Field(None, alias="orgnl_prtcptn_dt")
    certification_date: Optional[date] = Field(None, alias="crtfctn_dt")
    termination_expiration_date: Optional[date] = Field(None, alias="trmntn_exprtn_dt")
    change_of_ownership_date: Optional[date] = Field(None, alias="chow_dt")
    asc_begin_service_date: Optional[date] = Field(None, alias="asc_bgn_srvc_dt")
    processing_date: Optional[date] = Field(None, alias="processing_date")

    # Contact
    phone_number: Optional[str] = Field(None, alias="phne_num")
    fax_number: Optional[str] = Field(None, alias="fax_phne_num")

    # Characteristics & flags
    accreditation_type_code: Optional[str] = Field(None, alias="acrdtn_type_cd")
    intermediary_carrier_code: Optional[str] = Field(None, alias="intrmdry_carr_cd")
    acceptable_poc_switch: Optional[bool] = Field(None, alias="acptbl_poc_sw")
    fiscal_year_end_date: Optional[str] = Field(None, alias="fy_end_mo_day_cd")
    compliance_status_code: Optional[str] = Field(None, alias="cmplnc_stus_cd")
    certification_action_type_code: Optional[str] = Field(None, alias="crtfctn_actn_type_cd")

    # Bed counts
    bed_count: Optional[int] = Field(None, alias="bed_cnt")
    certified_bed_count: Optional[int] = Field(None, alias="crtfd_bed_cnt")
    hospice_bed_count: Optional[int] = Field(None, alias="hospc_bed_cnt")
    aids_bed_count: Optional[int] = Field(None, alias="aids_bed_cnt")
    alzheimer_bed_count: Optional[int] = Field(None, alias="alzhmr_bed_cnt")
    dialysis_bed_count: Optional[int] = Field(None, alias="dlys_bed_cnt")
    disabled_children_bed_count: Optional[int] = Field(None, alias="dsbl_chldrn_bed_cnt")
    head_trauma_bed_count: Optional[int] = Field(None, alias="head_trma_bed_cnt")
    huntington_disease_bed_count: Optional[int] = Field(None, alias="hntgtn_dease_bed_cnt")
    medicare_medicaid_snf_bed_count: Optional[int] = Field(None, alias="mdcr_mdcd_snf_bed_cnt")
    medicare_snf_bed_count: Optional[int] = Field(None, alias="mdcr_snf_bed_cnt")
    rehab_bed_count: Optional[int] = Field(None, alias="rehab_bed_cnt")
    ventilator_bed_count: Optional[int] = Field(None, alias="vntltr_bed_cnt")

    # Staffing counts
    lpn_lvn_count: Optional[float] = Field(None, alias="lpn_lvn_cnt")
    rn_count: Optional[float] = Field(None, alias="rn_cnt")
    employee_count: Optional[float] = Field(None, alias="emplee_cnt")

    # Service switches
    change_of_ownership_switch: Optional[bool] = Field(None, alias="chow_sw")
    hospital_based_switch: Optional[bool] = Field(None, alias="hosp_bsd_sw")
    multi_owned_facility_switch: Optional[bool] = Field(None, alias="mlt_ownd_fac_org_sw")

    clia_lab_number: Optional[str] = Field(None, alias="clia_lb_nb")

    # Category / types
    facility_category_code: Optional[str] = Field(None, alias="gnrl_fac_type_cd")
    ownership_type_code: Optional[str] = Field(None, alias="control_type")

    @validator("cms_certification_number", pre=True)
    def require_certification_number(cls, v):
        v = suppress_sentinel(v)
        if v is None:
            raise ValueError("certification number is blank")
        return v.strip()

    @validator(
        "name", "medicaid_vendor_number", "phone_number", "fax_number",
        "accreditation_type_code", "intermediary_carrier_code", "fiscal_year_end_date",
        "compliance_status_code", "certification_action_type_code", "clia_lab_number",
        "facility_category_code", "ownership_type_code",
        pre=True,
    )
    def clean_strings(cls, v):
        return suppress_sentinel(v)

    @validator(
        "provider_subtype_id", "provider_type_id", "bed_count", "certified_bed_count",
        "hospice_bed_count", "aids_bed_count", "alzheimer_bed_count", "dialysis_bed_count",
        "disabled_children_bed_count", "head_trauma_bed_count", "huntington_disease_bed_count",
        "medicare_medicaid_snf_bed_count", "medicare_snf_bed_count", "rehab_bed_count",
        "ventilator_bed_count",
        pre=True,
    )
    def clean_ints(cls, v):
        return parse_int(v)

    @validator("lpn_lvn_count", "rn_count", "employee_count", pre=True)
    def clean_floats(cls, v):
        if isinstance(v, (int, float)):
            return v
        return parse_float(v)

    @validator(
        "original_participation_date", "certification_date", "termination_expiration_date",
        "change_of_ownership_date", "asc_begin_service_date", "processing_date",
        pre=True,
    )
    def clean_dates(cls, v):
        return parse_date(v)

    @validator(
        "acceptable_poc_switch", "change_of_ownership_switch", "hospital_based_switch",
        "multi_owned_facility_switch",
        pre=True,
    )
    def clean_switches(cls, v):
        return parse_yes_no(v)

    class Config:
        populate_by_name = True


class ProviderOfServiceRow(BaseModel):
    """One mapped CSV row: the provider and the address it was listed with."""

    line_number: int
    provider: ProviderRecord
    address: AddressRecord


def source_columns(model) -> set:
    """CSV column names a record model reads."""
    return {field.alias for field in model.model_fields.values() if field.alias}
