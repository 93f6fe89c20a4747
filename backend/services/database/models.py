from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Facility(Base):
    __tablename__ = "facilities"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)

    # Pricing granularity: both True = one price ladder for the whole facility
    uniform_across_sections = Column(Boolean, nullable=False, default=True)
    uniform_across_bike_types = Column(Boolean, nullable=False, default=True)

    editor_modified = Column(String(255), nullable=True)
    date_modified = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)

    sections = relationship("Section", back_populates="facility", order_by="Section.id")


class BikeType(Base):
    __tablename__ = "bike_types"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=True)


class Section(Base):
    __tablename__ = "sections"

    id = Column(Integer, primary_key=True)
    facility_id = Column(String(64), ForeignKey("facilities.id"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    facility = relationship("Facility", back_populates="sections")
    bike_types = relationship(
        "SectionBikeType",
        back_populates="section",
        order_by="SectionBikeType.bike_type_id",
    )


class SectionBikeType(Base):
    """A vehicle type permitted (or not) in one section of a facility."""

    __tablename__ = "section_bike_types"

    id = Column(Integer, primary_key=True)
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=True, index=True)
    facility_id = Column(String(64), ForeignKey("facilities.id"), nullable=True, index=True)
    bike_type_id = Column(Integer, ForeignKey("bike_types.id"), nullable=True)
    allowed = Column(Boolean, nullable=False, default=True)

    section = relationship("Section", back_populates="bike_types")


class TariffTier(Base):
    """One step of a tiered price ladder ("first N hours cost X, next M hours cost Y")."""

    __tablename__ = "tariff_tiers"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(String(64), ForeignKey("facilities.id"), nullable=True, index=True)

    # Which of these are set depends on the facility's pricing granularity
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=True)
    section_bike_type_id = Column(Integer, ForeignKey("section_bike_types.id"), nullable=True)

    tier_order = Column(Integer, nullable=True)
    duration_hours = Column(Float, nullable=True)
    cost = Column(Float, nullable=True)
