from sqlalchemy import Column, Integer, Text, Index, func, literal_column
from models.base import Base

# Missing identity parts are coalesced to this literal both in the unique
# index and in the ON CONFLICT target, so the two expressions match exactly.
EMPTY = literal_column("''")


class Address(Base):
    """
    Deduplicated provider address with government geographic codes.

    Identity is (street_address, city, state_code, zip_code) with NULLs
    coalesced to ''. The in-memory dedup key uses the same coercion.
    """
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, autoincrement=True)

    street_address = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    state_code = Column(Text, nullable=True)
    zip_code = Column(Text, nullable=True)

    # Geographic codes
    ssa_county_code = Column(Text, nullable=True)
    ssa_state_code = Column(Text, nullable=True)
    state_region_code = Column(Text, nullable=True)
    region_code = Column(Text, nullable=True)
    fips_state_code = Column(Text, nullable=True)
    fips_county_code = Column(Text, nullable=True)
    cbsa_code = Column(Text, nullable=True)
    cbsa_urban_rural_indicator = Column(Text, nullable=True)

    __table_args__ = (
        Index(
            "uq_addresses_identity",
            func.coalesce(street_address, EMPTY),
            func.coalesce(city, EMPTY),
            func.coalesce(state_code, EMPTY),
            func.coalesce(zip_code, EMPTY),
            unique=True,
        ),
    )


IDENTITY_COLUMNS = ("street_address", "city", "state_code", "zip_code")

ADDRESS_COLUMNS = (
    "street_address",
    "city",
    "state_code",
    "zip_code",
    "ssa_county_code",
    "ssa_state_code",
    "state_region_code",
    "region_code",
    "fips_state_code",
    "fips_county_code",
    "cbsa_code",
    "cbsa_urban_rural_indicator",
)


def identity_conflict_target():
    """Index expressions of uq_addresses_identity, for ON CONFLICT inference."""
    return [func.coalesce(getattr(Address, name), EMPTY) for name in IDENTITY_COLUMNS]
