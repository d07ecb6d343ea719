# eastlink/models/schemas.py
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from eastlink.utils.sanitize import clean_text


# --- Enums ---

class Role(str, Enum):
    customer = "customer"
    seller = "seller"
    admin = "admin"
    delivery_agent = "delivery_agent"


class City(str, Enum):
    harar = "Harar"
    dire_dawa = "Dire Dawa"
    hararge = "Hararge"


class Category(str, Enum):
    electronics = "electronics"
    clothing = "clothing"
    food_beverages = "food_beverages"
    home_garden = "home_garden"
    books_media = "books_media"
    sports_outdoors = "sports_outdoors"
    automotive = "automotive"
    health_beauty = "health_beauty"
    toys_games = "toys_games"
    crafts_hobbies = "crafts_hobbies"
    other = "other"


class VehicleType(str, Enum):
    motorcycle = "motorcycle"
    bicycle = "bicycle"
    car = "car"
    van = "van"


class PaymentMethod(str, Enum):
    cash_on_delivery = "cash_on_delivery"
    online_payment = "online_payment"


def _check_object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError("Invalid id")
    return value


ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]
CleanStr = Annotated[str, AfterValidator(clean_text)]


class Schema(BaseModel):
    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)


# --- Users / auth ---

class Address(Schema):
    street: Optional[CleanStr] = Field(None, max_length=200)
    city: City
    region: Optional[CleanStr] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)


class WorkingHours(Schema):
    start: str = Field(..., pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end: str = Field(..., pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class RegisterRequest(Schema):
    first_name: CleanStr = Field(..., min_length=2, max_length=50)
    last_name: CleanStr = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: str = Field(..., pattern=r"^[0-9]{10,15}$")
    password: str = Field(..., min_length=6)
    address: Address
    role: Literal["customer", "seller", "delivery_agent"] = "customer"
    business_name: Optional[CleanStr] = Field(None, max_length=100)
    business_license: Optional[str] = Field(None, max_length=100)
    vehicle_type: Optional[VehicleType] = None
    license_number: Optional[str] = Field(None, max_length=50)
    working_hours: Optional[WorkingHours] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @model_validator(mode="after")
    def role_fields(self):
        if self.role == "seller" and not (self.business_name and self.business_license):
            raise ValueError("Sellers must provide business_name and business_license")
        if self.role == "delivery_agent" and not (self.vehicle_type and self.license_number):
            raise ValueError("Delivery agents must provide vehicle_type and license_number")
        return self


class LoginRequest(Schema):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class ProfileUpdate(Schema):
    first_name: Optional[CleanStr] = Field(None, min_length=2, max_length=50)
    last_name: Optional[CleanStr] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10,15}$")
    address: Optional[Address] = None
    business_name: Optional[CleanStr] = Field(None, max_length=100)
    business_license: Optional[str] = Field(None, max_length=100)
    vehicle_type: Optional[VehicleType] = None
    license_number: Optional[str] = Field(None, max_length=50)
    working_hours: Optional[WorkingHours] = None


class ForgotPasswordRequest(Schema):
    email: EmailStr


class ResetPasswordRequest(Schema):
    token: str = Field(..., min_length=10)
    password: str = Field(..., min_length=6)


class AvatarUpdate(Schema):
    avatar: str = Field(..., min_length=1, max_length=500)


class NotificationPreferences(Schema):
    order_updates: Optional[bool] = None
    promotions: Optional[bool] = None
    newsletter: Optional[bool] = None
    sms: Optional[bool] = None
    email: Optional[bool] = None


class PrivacyPreferences(Schema):
    profile_visible: Optional[bool] = None
    activity_status: Optional[bool] = None


class PreferencesUpdate(Schema):
    notifications: Optional[NotificationPreferences] = None
    privacy: Optional[PrivacyPreferences] = None
    language: Optional[str] = Field(None, min_length=2, max_length=5)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class WishlistAdd(Schema):
    product_id: ObjectIdStr


# --- Products / reviews ---

class Dimensions(Schema):
    length: Optional[float] = Field(None, ge=0)
    width: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)


def _split_tags(value):
    if value is None:
        return value
    if isinstance(value, str):
        value = value.split(",")
    return [clean_text(t) for t in value if t and str(t).strip()]


class ProductCreate(Schema):
    name: CleanStr = Field(..., min_length=2, max_length=100)
    description: CleanStr = Field(..., min_length=10, max_length=2000)
    price: float = Field(..., ge=0)
    original_price: float = Field(0, ge=0)
    category: Category
    subcategory: Optional[CleanStr] = Field(None, max_length=100)
    stock: int = Field(..., ge=0)
    min_order_quantity: int = Field(1, ge=1)
    max_order_quantity: int = Field(100, ge=1)
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None
    tags: Union[List[str], str, None] = None
    images: List[str] = Field(default_factory=list, max_length=5)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return _split_tags(v)

    @model_validator(mode="after")
    def order_limits(self):
        if self.max_order_quantity < self.min_order_quantity:
            raise ValueError("max_order_quantity must be at least min_order_quantity")
        return self


class ProductUpdate(Schema):
    name: Optional[CleanStr] = Field(None, min_length=2, max_length=100)
    description: Optional[CleanStr] = Field(None, min_length=10, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: Optional[Category] = None
    subcategory: Optional[CleanStr] = Field(None, max_length=100)
    stock: Optional[int] = Field(None, ge=0)
    min_order_quantity: Optional[int] = Field(None, ge=1)
    max_order_quantity: Optional[int] = Field(None, ge=1)
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None
    tags: Union[List[str], str, None] = None
    images: Optional[List[str]] = Field(None, max_length=5)
    is_active: Optional[bool] = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return _split_tags(v)


class ReviewCreate(Schema):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[CleanStr] = Field(None, max_length=500)


# --- Cart / orders ---

class CartAdd(Schema):
    product_id: ObjectIdStr
    quantity: int = Field(1, ge=1)


class CartUpdate(Schema):
    quantity: int = Field(..., ge=0)


class OrderItemIn(Schema):
    product_id: ObjectIdStr
    quantity: int = Field(..., ge=1)


class DeliveryAddress(Schema):
    street: CleanStr = Field(..., min_length=1, max_length=200)
    city: City
    region: Optional[CleanStr] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    instructions: Optional[CleanStr] = Field(None, max_length=500)


class OrderNotes(Schema):
    customer: Optional[CleanStr] = Field(None, max_length=500)
    seller: Optional[CleanStr] = Field(None, max_length=500)
    admin: Optional[CleanStr] = Field(None, max_length=500)


class CheckoutRequest(Schema):
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod = "cash_on_delivery"
    notes: Optional[OrderNotes] = None
    is_urgent: bool = False


class OrderCreate(CheckoutRequest):
    items: List[OrderItemIn] = Field(..., min_length=1)


class StatusUpdate(Schema):
    status: Literal["accepted", "rejected", "preparing", "ready_for_pickup",
                    "dispatched", "in_transit", "delivered", "cancelled"]
    message: Optional[CleanStr] = Field(None, max_length=200)


class CancelRequest(Schema):
    reason: Optional[CleanStr] = Field(None, max_length=500)


class Location(Schema):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class DeliveryStatusUpdate(Schema):
    status: Literal["picked_up", "in_transit", "delivered", "failed"]
    notes: Optional[CleanStr] = Field(None, max_length=500)
    location: Optional[Location] = None


class CompleteDelivery(Schema):
    customer_signature: Optional[str] = None
    delivery_notes: Optional[CleanStr] = Field(None, max_length=500)


class AvailabilityUpdate(Schema):
    is_available: bool
    working_hours: Optional[WorkingHours] = None


class IssueReport(Schema):
    type: Literal["customer_unavailable", "address_issue", "product_damaged", "other"]
    description: CleanStr = Field(..., min_length=10, max_length=1000)


# --- Admin ---

class UserStatusAction(Schema):
    action: Literal["approve", "reject", "activate", "deactivate"]


class ProductStatusAction(Schema):
    action: Literal["activate", "deactivate", "feature", "unfeature"]


class AdminOrderUpdate(Schema):
    status: Optional[Literal["accepted", "rejected", "preparing", "ready_for_pickup",
                             "dispatched", "in_transit", "delivered", "cancelled"]] = None
    delivery_agent_id: Optional[ObjectIdStr] = None
    message: Optional[CleanStr] = Field(None, max_length=200)

    @model_validator(mode="after")
    def something_to_do(self):
        if not self.status and not self.delivery_agent_id:
            raise ValueError("Provide status and/or delivery_agent_id")
        return self
