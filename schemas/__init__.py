"""
Pydantic schemas for row validation and typed records.

Schemas:
    records: Provider of Services CSV rows split into AddressRecord and
             ProviderRecord, with sentinel, numeric, date and Yes/No coding

Usage:
    from schemas.records import AddressRecord, ProviderRecord, ProviderOfServiceRow

Example:
    provider = ProviderRecord.parse_obj({"prvdr_num": "010001", "bed_cnt": "Not Available"})

    assert provider.cms_certification_number == "010001"
    assert provider.bed_count is None

Validation:
    Field values are coded by Pydantic pre-validators:
    - Sentinel suppression ("Not Applicable", "Not Available", blank)
    - Lenient numeric and date parsing (failure -> None)
    - Yes/No switches
    - A blank certification number is the only hard failure
"""

__all__ = [
    "AddressRecord",
    "ProviderRecord",
    "ProviderOfServiceRow",
]
