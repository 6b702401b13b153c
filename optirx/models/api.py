from pydantic import ConfigDict, Field, SerializeAsAny
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from .schema import (
    CamelModel,
    ContactLensItem,
    DiscountType,
    FieldLocator,
    LineItem,
    PrescriptionAnalysis,
    PrescriptionRecord,
    VaComparison,
    VisualAcuity,
)

# contact-lens rows carry extra lens columns; plain rows resolve to LineItem
AnyLineItem = Union[LineItem, ContactLensItem]


# === Prescriptions ===

class NewPrescriptionRequest(CamelModel):
    fiscal_year: Optional[str] = None


class RecordRequest(CamelModel):
    record: PrescriptionRecord
    ipd_policy: Optional[str] = None


class FieldUpdateRequest(CamelModel):
    record: PrescriptionRecord
    locator: Annotated[FieldLocator, Field(discriminator="kind")]
    value: Any = None
    ipd_policy: Optional[str] = None


class SaveResponse(CamelModel):
    id: str
    record: PrescriptionRecord


class RejectedSave(CamelModel):
    saved: bool = False
    errors: Dict[str, str]


class ValidationResponse(CamelModel):
    valid: bool
    errors: Dict[str, str] = Field(default_factory=dict)


class SearchResponse(CamelModel):
    results: List[PrescriptionRecord] = Field(default_factory=list)


class AnalysisResponse(CamelModel):
    analysis: PrescriptionAnalysis


class OptionsResponse(CamelModel):
    titles: List[str]
    classes: List[str]
    prescribed_by: List[str]


# === Visual acuity ===

class VaParseRequest(CamelModel):
    value: str
    sph: str = ""
    cyl: str = ""
    age: str = ""


class VaParseResponse(CamelModel):
    valid: bool
    visual_acuity: Optional[VisualAcuity] = None
    display: str = ""


class ExpectedVaRequest(CamelModel):
    sph: str
    cyl: str = ""
    age: str = ""
    actual: Optional[str] = None


class ExpectedVaResponse(CamelModel):
    expected: Optional[VisualAcuity] = None
    comparison: Optional[VaComparison] = None


class HighPrescriptionRequest(CamelModel):
    sph: str = ""
    cyl: str = ""


# === Billing ===

class ItemsRequest(CamelModel):
    items: List[AnyLineItem] = Field(default_factory=list)


class ItemsResponse(CamelModel):
    items: List[SerializeAsAny[LineItem]]


class ContactLensColumns(CamelModel):
    """Lens columns of a contact-lens row; pricing fields belong to the item itself."""
    model_config = ConfigDict(extra="forbid")

    bc: str = ""
    diameter: str = ""
    power: str = ""
    material: str = ""
    dispose: str = ""
    brand: str = ""
    lens_code: str = ""
    side: Literal["Right", "Left", ""] = ""
    sph: str = ""
    cyl: str = ""
    ax: str = ""


class AddItemRequest(ItemsRequest):
    item_name: str
    rate: float
    qty: float = 1
    item_code: str = ""
    tax_percent: float = 0.0
    unit: str = "PCS"
    contact_lens: Optional[ContactLensColumns] = None


class UpdateItemRequest(ItemsRequest):
    index: int
    rate: Optional[float] = None
    qty: Optional[float] = None


class DeleteItemRequest(ItemsRequest):
    index: int


class GlobalDiscountRequest(ItemsRequest):
    value: Any
    discount_type: DiscountType = "percentage"


class ItemDiscountRequest(ItemsRequest):
    index: int
    value: Any
    discount_type: DiscountType = "percentage"


class SummaryRequest(ItemsRequest):
    advance: Any = 0
    cash: Any = ""
    cc_upi: Any = ""
    cheque: Any = ""
    cash2: Any = ""
    policy: Optional[str] = None
