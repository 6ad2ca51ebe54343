from chalet_booking.schemas.user import UserCreate, UserResponse, UserLogin, RoleUpdate, Token
from chalet_booking.schemas.listing import (
    ListingCreate, ListingUpdate, ListingResponse, ListingListResponse, ListingSearch,
    DashboardStats, AvailabilityResponse, BookedRange,
)
from chalet_booking.schemas.booking import (
    BookingCreate, BookingResponse, BookingCancelResponse, BookingStatusUpdate, QuoteRequest, PriceQuote,
)
from chalet_booking.schemas.transport import TransportCreate, TransportResponse, TransportQuote
from chalet_booking.schemas.service import ServiceApply, ServiceResponse, ExpireResponse
from chalet_booking.schemas.message import (
    MessageCreate, MessageResponse, ConversationSummary, ConversationDetail, NewConversation, MarkReadResponse,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "RoleUpdate", "Token",
    "ListingCreate", "ListingUpdate", "ListingResponse", "ListingListResponse", "ListingSearch",
    "DashboardStats", "AvailabilityResponse", "BookedRange",
    "BookingCreate", "BookingResponse", "BookingCancelResponse", "BookingStatusUpdate", "QuoteRequest", "PriceQuote",
    "TransportCreate", "TransportResponse", "TransportQuote",
    "ServiceApply", "ServiceResponse", "ExpireResponse",
    "MessageCreate", "MessageResponse", "ConversationSummary", "ConversationDetail", "NewConversation",
    "MarkReadResponse",
]
