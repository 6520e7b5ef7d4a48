from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from uuid import UUID
from datetime import datetime

from app.core.config import settings


DocumentCategoryLiteral = Literal["invoice", "credit_note", "quote"]


# ===== DOCUMENT TYPES =====

class DocumentTypeCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    category: DocumentCategoryLiteral = "invoice"
    requires_tax_id: bool = False


class DocumentTypeOut(BaseModel):
    id: UUID
    organization_id: UUID
    code: str
    name: str
    description: Optional[str] = None
    category: str
    requires_tax_id: bool
    is_active: bool

    class Config:
        from_attributes = True


# ===== SEQUENCES =====

class SequenceConfig(BaseModel):
    """
    Configuración de una secuencia. Los límites se validan en
    SequenceManager.validate_sequence_config para devolver todos los errores juntos.
    """
    prefix: Optional[str] = ""
    suffix: Optional[str] = ""
    initial_number: int = 1
    padding_length: int = settings.FISCAL_DEFAULT_PADDING_LENGTH
    max_number: Optional[int] = None
    is_active: bool = True


class SequenceCreate(SequenceConfig):
    document_type_id: UUID


class SequenceUpdate(BaseModel):
    # current_number e initial_number no son editables por esta vía
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    padding_length: Optional[int] = None
    max_number: Optional[int] = None
    is_active: Optional[bool] = None


class SequenceOut(BaseModel):
    id: UUID
    organization_id: UUID
    document_type_id: UUID
    prefix: str
    suffix: str
    initial_number: int
    current_number: int
    max_number: Optional[int] = None
    padding_length: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SequenceStats(BaseModel):
    sequence_id: UUID
    total_issued: int
    remaining: Optional[int] = None
    percentage_used: Optional[float] = None
    next_number: str
    is_near_limit: bool
    is_exhausted: bool
    last_issued_at: Optional[datetime] = None


class SequenceResetOut(BaseModel):
    id: UUID
    sequence_id: UUID
    previous_number: int
    new_number: int
    created_at: datetime

    class Config:
        from_attributes = True


class PreviewRequest(BaseModel):
    prefix: Optional[str] = ""
    suffix: Optional[str] = ""
    number: int = Field(..., ge=0)
    padding_length: int = Field(..., ge=1, le=20)


class PreviewResponse(BaseModel):
    formatted_number: str


class ConfigValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str] = []


# ===== ALLOCATION / VALIDATION =====

class AllocationRequest(BaseModel):
    document_type_id: UUID


class AllocationResult(BaseModel):
    success: bool = True
    formatted_number: str
    sequence_id: UUID
    number: int


class ValidationResult(BaseModel):
    is_valid: bool
    message: str
    missing_sequences: List[str] = []
    redirect_url: Optional[str] = None


class DocumentTypeStateOut(BaseModel):
    document_type_id: UUID
    state: str
