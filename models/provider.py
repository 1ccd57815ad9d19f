from sqlalchemy import Column, Integer, Float, Boolean, Date, Text, String, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base


class Provider(Base):
    """
    Provider of Services record keyed by its CMS certification number.

    Field Mapping (POS iQIES CSV column -> attribute):
    - prvdr_num -> cms_certification_number
    - fac_name -> name
    - orgnl_prtcptn_dt / crtfctn_dt / ... -> *_date (YYYY-MM-DD or YYYYMMDD)
    - *_bed_cnt -> *_bed_count (integers)
    - lpn_lvn_cnt / rn_cnt / emplee_cnt -> staffing counts (floats)
    - *_sw -> *_switch (Yes/No booleans)
    - st_adr / city_name / state_cd / zip_cd -> addresses row via address_id
    """
    __tablename__ = "providers"

    # Identification
    cms_certification_number = Column(String(20), primary_key=True)
    name = Column(Text, nullable=True)
    provider_subtype_id = Column(Integer, nullable=True)
    medicaid_vendor_number = Column(Text, nullable=True)
    provider_type_id = Column(Integer, nullable=True, index=True)

    # Location
    address_id = Column(Integer, ForeignKey("addresses.id"), nullable=True, index=True)

    # Dates
    original_participation_date = Column(Date, nullable=True)
    certification_date = Column(Date, nullable=True)
    termination_expiration_date = Column(Date, nullable=True)
    change_of_ownership_date = Column(Date, nullable=True)
    asc_begin_service_date = Column(Date, nullable=True)
    processing_date = Column(Date, nullable=True)

    # Contact
    phone_number = Column(Text, nullable=True)
    fax_number = Column(Text, nullable=True)

    # Characteristics & flags
    accreditation_type_code = Column(Text, nullable=True)
    intermediary_carrier_code = Column(Text, nullable=True)
    acceptable_poc_switch = Column(Boolean, nullable=True)
    fiscal_year_end_date = Column(Text, nullable=True)
    compliance_status_code = Column(Text, nullable=True)
    certification_action_type_code = Column(Text, nullable=True)

    # Bed counts
    bed_count = Column(Integer, nullable=True)
    certified_bed_count = Column(Integer, nullable=True)
    hospice_bed_count = Column(Integer, nullable=True)
    aids_bed_count = Column(Integer, nullable=True)
    alzheimer_bed_count = Column(Integer, nullable=True)
    dialysis_bed_count = Column(Integer, nullable=True)
    disabled_children_bed_count = Column(Integer, nullable=True)
    head_trauma_bed_count = Column(Integer, nullable=True)
    huntington_disease_bed_count = Column(Integer, nullable=True)
    medicare_medicaid_snf_bed_count = Column(Integer, nullable=True)
    medicare_snf_bed_count = Column(Integer, nullable=True)
    rehab_bed_count = Column(Integer, nullable=True)
    ventilator_bed_count = Column(Integer, nullable=True)

    # Staffing counts
    lpn_lvn_count = Column(Float, nullable=True)
    rn_count = Column(Float, nullable=True)
    employee_count = Column(Float, nullable=True)

    # Service switches
    change_of_ownership_switch = Column(Boolean, nullable=True)
    hospital_based_switch = Column(Boolean, nullable=True)
    multi_owned_facility_switch = Column(Boolean, nullable=True)

    clia_lab_number = Column(Text, nullable=True)

    # Category / types
    facility_category_code = Column(Text, nullable=True)
    ownership_type_code = Column(Text, nullable=True)

    address = relationship("Address")


PROVIDER_COLUMNS = tuple(column.name for column in Provider.__table__.columns)
