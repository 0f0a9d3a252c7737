from serverbook.models.booking import Booking
from serverbook.models.preference import Preference
from serverbook.models.status import BookingStatus, BookingStateMachine

__all__ = ["Booking", "Preference", "BookingStatus", "BookingStateMachine"]
