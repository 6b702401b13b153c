from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny
from pydantic.alias_generators import to_camel
from typing import Optional, Literal, Union

Eye = Literal["right", "left"]
VisionType = Literal["dv", "nv"]
EyeField = Literal["sph", "cyl", "ax", "add", "vn", "rpd", "lpd"]
VaStatus = Literal["Normal", "Slightly reduced", "Reduced", "Severely reduced"]
ComparisonStatus = Literal["Better than expected", "As expected", "Worse than expected"]
DiscountType = Literal["percentage", "fixed"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EyeMeasurement(CamelModel):
    sph: str = ""
    cyl: str = ""
    ax: str = ""
    add: str = ""
    vn: str = ""
    rpd: str = ""  # right D.V only
    lpd: str = ""  # left D.V only
    spherical_equivalent: str = ""  # derived


class EyePrescription(CamelModel):
    dv: EyeMeasurement = Field(default_factory=EyeMeasurement)
    nv: EyeMeasurement = Field(default_factory=EyeMeasurement)


class Remarks(CamelModel):
    for_constant_use: bool = False
    for_distance_vision_only: bool = False
    for_near_vision_only: bool = False
    separate_glasses: bool = False
    bi_focal_lenses: bool = False
    progressive_lenses: bool = False
    anti_reflection_lenses: bool = False
    anti_radiation_lenses: bool = False
    under_corrected: bool = False


class PrescriptionRecord(CamelModel):
    id: Optional[str] = None
    prescription_no: str = ""
    reference_no: str = ""
    customer_class: str = Field("", alias="class")
    prescribed_by: str = ""
    date: str = ""
    name: str = ""
    title: str = ""
    age: str = ""
    gender: str = "Male"
    customer_code: str = ""
    birth_day: str = ""
    marriage_anniversary: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    pin_code: str = ""
    phone_landline: str = ""
    mobile_no: str = ""
    email: str = ""
    ipd: str = ""
    retest_after: str = ""
    others: str = ""
    right_eye: EyePrescription = Field(default_factory=EyePrescription)
    left_eye: EyePrescription = Field(default_factory=EyePrescription)
    remarks: Remarks = Field(default_factory=Remarks)
    balance_lens: bool = False

    def eye(self, eye: Eye) -> EyePrescription:
        return self.right_eye if eye == "right" else self.left_eye


# === Field locators ===

class EyeFieldLocator(CamelModel):
    kind: Literal["eye"] = "eye"
    eye: Eye
    vision: VisionType
    field: EyeField


class HeaderFieldLocator(CamelModel):
    kind: Literal["header"] = "header"
    field: str


class RemarkLocator(CamelModel):
    kind: Literal["remark"] = "remark"
    remark: str


class BalanceLensLocator(CamelModel):
    kind: Literal["balance_lens"] = "balance_lens"


FieldLocator = Union[EyeFieldLocator, HeaderFieldLocator, RemarkLocator, BalanceLensLocator]


# === Derived / analysis results ===

class ValidationError(CamelModel):
    field: str
    message: str


class VaComparison(CamelModel):
    difference: float = 0.0
    status: ComparisonStatus = "As expected"
    recommendation: Optional[str] = None


class VisualAcuity(CamelModel):
    fraction: str
    status: VaStatus
    decimal_value: float
    equivalent_value: Optional[str] = None
    comparison_to_expected: Optional[VaComparison] = None


class HighPrescriptionCheck(CamelModel):
    is_high: bool = False
    warnings: list[str] = Field(default_factory=list)


class EyeAnalysis(CamelModel):
    visual_acuity: Optional[VisualAcuity] = None
    warnings: list[str] = Field(default_factory=list)


class PrescriptionAnalysis(CamelModel):
    right_eye: EyeAnalysis = Field(default_factory=EyeAnalysis)
    left_eye: EyeAnalysis = Field(default_factory=EyeAnalysis)


# === Billing ===

class LineItem(CamelModel):
    si: int = 1
    item_code: str = ""
    item_name: str = ""
    unit: str = "PCS"
    tax_percent: float = 0.0
    rate: float = 0.0
    qty: float = 1
    discount_amount: float = 0.0
    discount_percent: float = 0.0
    amount: float = 0.0

    @property
    def total(self) -> float:
        """Pre-discount total (rate x qty)."""
        return self.rate * self.qty


class ContactLensItem(LineItem):
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


class DiscountOutcome(CamelModel):
    applied: bool
    items: list[SerializeAsAny[LineItem]]
    message: str
    discount_amount: float = 0.0
    payment_estimate: Optional[float] = None


class PaymentSummary(CamelModel):
    payment_estimate: float
    sch_amt: float
    advance: float
    balance: float
    policy: str


# === Storage shape ===

class StorageRows(BaseModel):
    prescription: dict
    eye_prescriptions: list[dict] = Field(default_factory=list)
    remarks: dict = Field(default_factory=dict)
