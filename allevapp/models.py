from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey, Float, Date, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from allevapp.database import Base


# Association table for Technician-Farm many-to-many relationship
farm_technicians = Table(
    'farm_technicians',
    Base.metadata,
    Column('farm_id', Integer, ForeignKey('farms.id', ondelete='CASCADE'), primary_key=True),
    Column('user_id', Integer, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    Column('assigned_at', DateTime, default=func.now())
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, index=True, nullable=True)
    username = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, default="technician")  # admin, manager, technician
    active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    assigned_farms = relationship("Farm", secondary=farm_technicians, back_populates="technicians")


class Farm(Base):
    __tablename__ = "farms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    company = Column(String, nullable=False)  # One of the group companies (see services/companies.py)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    barns = relationship("Barn", back_populates="farm", cascade="all, delete-orphan")
    equipment = relationship("Equipment", back_populates="farm", cascade="all, delete-orphan")
    facilities = relationship("Facility", back_populates="farm", cascade="all, delete-orphan")
    reports = relationship("Report", back_populates="farm", cascade="all, delete-orphan")
    documents = relationship("FarmDocument", back_populates="farm", cascade="all, delete-orphan")
    technicians = relationship("User", secondary=farm_technicians, back_populates="assigned_farms")


class Barn(Base):
    __tablename__ = "barns"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    farm_id = Column(Integer, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=func.now())

    farm = relationship("Farm", back_populates="barns")
    equipment = relationship("Equipment", back_populates="barn")


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class Equipment(Base):
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    model = Column(String, nullable=True)
    serial_number = Column(String, nullable=True)
    farm_id = Column(Integer, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False)
    barn_id = Column(Integer, ForeignKey("barns.id", ondelete="SET NULL"), nullable=True)
    status = Column(String, default="working")  # working, not_working, regenerated, repaired
    description = Column(Text, nullable=True)

    # Maintenance schedule
    last_maintenance = Column(Date, nullable=True)
    next_maintenance_due = Column(Date, nullable=True)
    maintenance_interval_days = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    farm = relationship("Farm", back_populates="equipment")
    barn = relationship("Barn", back_populates="equipment")


class Facility(Base):
    __tablename__ = "facilities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # electrical, plumbing, ventilation, heating, cooling, lighting, security, other
    farm_id = Column(Integer, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, default="working")  # working, not_working, maintenance_required, under_maintenance

    # Maintenance schedule
    last_maintenance = Column(Date, nullable=True)
    next_maintenance_due = Column(Date, nullable=True)
    maintenance_interval_days = Column(Integer, default=365)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    farm = relationship("Farm", back_populates="facilities")


class Report(Base):
    """Issue ticket filed against a farm and, optionally, a piece of equipment"""
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    farm_id = Column(Integer, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False)
    equipment_id = Column(Integer, ForeignKey("equipment.id", ondelete="SET NULL"), nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    urgency = Column(String, default="medium")  # low, medium, high, critical
    status = Column(String, default="open")  # open, in_progress, resolved, closed
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    farm = relationship("Farm", back_populates="reports")
    equipment = relationship("Equipment")
    supplier = relationship("Supplier")
    assignee = relationship("User", foreign_keys=[assigned_to])
    creator = relationship("User", foreign_keys=[created_by])
    quotes = relationship("Quote", back_populates="report")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    project_number = Column(String, unique=True, index=True, nullable=False)
    company = Column(String, nullable=False)
    sequential_number = Column(Integer, nullable=False)
    farm_id = Column(Integer, ForeignKey("farms.id", ondelete="SET NULL"), nullable=True)
    status = Column(String, default="open")  # open, defined, in_progress, completed, discarded
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    farm = relationship("Farm")
    quotes = relationship("Quote", back_populates="project")


class Quote(Base):
    """Price request sent to a supplier"""
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="SET NULL"), nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False)
    farm_id = Column(Integer, ForeignKey("farms.id", ondelete="SET NULL"), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=True)
    status = Column(String, default="requested")  # requested, received, accepted, rejected
    requested_at = Column(DateTime, default=func.now())
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    report = relationship("Report", back_populates="quotes")
    supplier = relationship("Supplier")
    farm = relationship("Farm")
    project = relationship("Project", back_populates="quotes")
    order_confirmation = relationship("OrderConfirmation", back_populates="quote", uselist=False)


class OrderConfirmation(Base):
    __tablename__ = "order_confirmations"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id", ondelete="SET NULL"), nullable=True)
    order_number = Column(String, unique=True, index=True, nullable=False)
    company = Column(String, nullable=False)
    sequential_number = Column(Integer, nullable=False)
    farm_id = Column(Integer, ForeignKey("farms.id", ondelete="SET NULL"), nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    total_amount = Column(Float, nullable=True)
    order_date = Column(Date, nullable=False)
    delivery_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String, default="pending")  # pending, confirmed, delivered, cancelled
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    quote = relationship("Quote", back_populates="order_confirmation")
    farm = relationship("Farm")
    supplier = relationship("Supplier")


class DocumentCategory(Base):
    __tablename__ = "document_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String, default="#6b7280")
    icon = Column(String, nullable=True)
    created_at = Column(DateTime, default=func.now())

    documents = relationship("FarmDocument", back_populates="category")


class FarmDocument(Base):
    __tablename__ = "farm_documents"

    id = Column(Integer, primary_key=True, index=True)
    farm_id = Column(Integer, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, ForeignKey("document_categories.id", ondelete="SET NULL"), nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)  # Storage key (S3 or local/...)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String, nullable=True)
    document_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True)
    tags = Column(Text, nullable=True)  # JSON list of tags
    is_important = Column(Boolean, default=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    farm = relationship("Farm", back_populates="documents")
    category = relationship("DocumentCategory", back_populates="documents")


class Attachment(Base):
    """File attached to a report, a piece of equipment or a quote"""
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String, nullable=False, index=True)  # report, equipment, quote
    entity_id = Column(Integer, nullable=False, index=True)
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    custom_label = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())
