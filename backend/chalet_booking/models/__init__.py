from chalet_booking.models.user import User
from chalet_booking.models.listing import Listing
from chalet_booking.models.booking import Booking
from chalet_booking.models.transport import TransportBooking
from chalet_booking.models.customer_service import CustomerService
from chalet_booking.models.message import Message

__all__ = ["User", "Listing", "Booking", "TransportBooking", "CustomerService", "Message"]
